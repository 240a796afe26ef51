import os
import ssl
from typing import AsyncIterator, Dict, Tuple
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase


def normalize_database_url(url: str) -> Tuple[str, Dict]:
    """Adapt a libpq-style Postgres URL for asyncpg.

    Neon connection strings use postgresql:// with query params like
    sslmode=require and channel_binding=require that asyncpg doesn't
    accept via the URL. We strip them and pass SSL via connect_args.
    Other schemes are returned untouched.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("postgres", "postgresql"):
        return url, {}

    query_params = parse_qs(parsed.query)
    needs_ssl = query_params.pop("sslmode", [None])[0] == "require"
    query_params.pop("channel_binding", None)

    clean_query = urlencode(query_params, doseq=True)
    url = urlunparse(parsed._replace(scheme="postgresql+asyncpg", query=clean_query))
    connect_args = {"ssl": ssl.create_default_context()} if needs_ssl else {}
    return url, connect_args


DATABASE_URL = os.getenv("DATABASE_URL", "")

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required.")

DATABASE_URL, _connect_args = normalize_database_url(DATABASE_URL)

engine = create_async_engine(
    DATABASE_URL, echo=False, pool_pre_ping=True, connect_args=_connect_args
)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_session() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session

import os
import tempfile

# Configure the app before it is imported: the database module reads
# DATABASE_URL at import time and the rate limit is fixed at decoration time.
_DB_PATH = os.path.join(tempfile.mkdtemp(), "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["RATE_LIMIT_PER_IP"] = "1000/minute"

import pytest
from fastapi.testclient import TestClient

from app.analysis import ScoreAnalysisEngine
from app.mailer import MailerError, get_mailer
from app.main import app, get_analysis_engine
from app.schemas import GradedAnswer


class StubGenerator:
    """Deterministic stand-in for the text-generation service."""

    def __init__(self, reply="You need to work harder.", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeMailer:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send(self, to, subject, html):
        if self.fail:
            raise MailerError("Resend API error (500): boom")
        self.sent.append({"to": to, "subject": subject, "html": html})
        return "email-id"


def make_answer(block, points, question=None, answer="I don't know"):
    return GradedAnswer(
        question=question or f"{block} question",
        block=block,
        answer=answer,
        points=points,
    )


@pytest.fixture
def generator():
    return StubGenerator()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(generator, mailer):
    if os.path.exists(_DB_PATH):
        os.remove(_DB_PATH)

    app.dependency_overrides[get_analysis_engine] = lambda: ScoreAnalysisEngine(generator)
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

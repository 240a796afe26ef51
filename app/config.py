import os

from pydantic import BaseModel

from .errors import ConfigurationError

DEFAULT_GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_GROQ_MODEL = "openai/gpt-oss-20b"

RATE_LIMIT_PER_IP = os.getenv("RATE_LIMIT_PER_IP", "5/hour")

# --- Transactional email ---
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
MAIL_FROM = os.getenv("MAIL_FROM", "Student Sahayak <no-reply@studentsahayak.in>")
APP_BASE_URL = os.getenv("APP_BASE_URL", "https://www.studentsahayak.in")

# --- Payments ---
RAZORPAY_KEY = os.getenv("RAZORPAY_KEY", "")
RAZORPAY_SECRET = os.getenv("RAZORPAY_SECRET", "")


class LLMConfig(BaseModel):
    """Connection settings for the text-generation service."""

    api_endpoint: str = DEFAULT_GROQ_BASE_URL
    api_key: str = ""
    model: str = DEFAULT_GROQ_MODEL
    timeout: float = 90.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "LLMConfig":
        raw_timeout = os.getenv("GROQ_TIMEOUT", "90")
        try:
            timeout = float(raw_timeout)
        except ValueError as exc:
            raise ConfigurationError(
                "Invalid GROQ_TIMEOUT.", details=f"GROQ_TIMEOUT={raw_timeout!r}"
            ) from exc
        return cls(
            api_endpoint=os.getenv("GROQ_BASE_URL", DEFAULT_GROQ_BASE_URL),
            api_key=os.getenv("GROQ_API_KEY", ""),
            model=os.getenv("GROQ_MODEL", DEFAULT_GROQ_MODEL),
            timeout=timeout,
        )

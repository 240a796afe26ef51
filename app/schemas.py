from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Any, Dict, List, Optional

MAX_POINTS_PER_QUESTION = 5


# ---------------------------------------------------------------------------
# Test analysis
# ---------------------------------------------------------------------------


class GradedAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    block: str = Field(min_length=1)
    answer: str
    points: int = Field(ge=0, le=MAX_POINTS_PER_QUESTION)


class AnalyzeTestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answers: Optional[List[GradedAnswer]] = None
    status: Optional[str] = None
    # Deprecated: older clients send their own totals. They are recomputed
    # from ``answers`` and otherwise ignored, whatever their type.
    total_score: Optional[Any] = Field(default=None, alias="totalScore")
    max_score: Optional[Any] = Field(default=None, alias="maxScore")
    percentage: Optional[str] = None

    @field_validator("status", "percentage", mode="before")
    @classmethod
    def stringify(cls, v):
        return None if v is None else str(v)


class BlockSummary(BaseModel):
    total: int = 0
    scored: int = 0
    questions: int = 0


class WeakArea(BaseModel):
    block: str
    scored: int
    total: int
    percentage: str


class ScoreCard(BaseModel):
    total: int
    max: int
    percentage: str
    status: Optional[str] = None


class ScoreAnalysis(BaseModel):
    """Everything derived from the answers before the narrative is generated."""

    score: ScoreCard
    blocks: Dict[str, BlockSummary]
    weak_areas: List[WeakArea]
    critical_answers: List[GradedAnswer]
    prompt: str


class BlockBreakdown(BaseModel):
    block: str
    scored: int
    total: int
    percentage: str


class AnalysisResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    score: ScoreCard
    block_analysis: List[BlockBreakdown] = Field(alias="blockAnalysis")


class ErrorResponse(BaseModel):
    message: str
    error: str


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field(alias="fullName", min_length=1)
    phone_number: str = Field(alias="phoneNumber", min_length=1)
    email: EmailStr
    age: int = Field(gt=0)
    exam: str = Field(min_length=1)
    image: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr


class UserOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    full_name: str = Field(alias="fullName")
    email: str
    email_verified: bool = Field(alias="emailVerified")


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class CreateOrderRequest(BaseModel):
    amount: float = Field(gt=0)
    currency: str = "INR"
    receipt: Optional[str] = None


class OrderOut(BaseModel):
    order_id: str
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: str
    notes: Optional[Dict[str, Any]] = None

    @field_validator("notes", mode="before")
    @classmethod
    def empty_notes(cls, v):
        # Razorpay returns an empty list when an order has no notes.
        return v or None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str

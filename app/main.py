import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import config
from .analysis import ScoreAnalysisEngine
from .auth import router as auth_router
from .database import Base, engine
from .errors import AnalysisError, GenerationError
from .llm import GroqClient
from .payments import PaymentConfigError, PaymentError, RazorpayClient, get_payment_client
from .schemas import (
    AnalysisResult,
    AnalyzeTestRequest,
    CreateOrderRequest,
    OrderOut,
    VerifyPaymentRequest,
)

# --- Rate limiting ---
limiter = Limiter(key_func=get_remote_address)


def get_analysis_engine() -> ScoreAnalysisEngine:
    return ScoreAnalysisEngine(GroqClient(config.LLMConfig.from_env()))


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(title="Student Sahayak API", lifespan=lifespan)
app.state.limiter = limiter
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
)
app.include_router(auth_router)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        {
            "message": "Rate limit exceeded. Please slow down and try again later.",
            "error": "Rate limit exceeded",
        },
        status_code=429,
    )


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    if exc.details:
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.details)
    return JSONResponse(
        {"message": exc.message, "error": exc.error},
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are the caller's fault: answer 400, not 422."""
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(
        {"message": "; ".join(problems) or "Invalid request.", "error": "Invalid request"},
        status_code=400,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/", response_class=PlainTextResponse)
async def index():
    return "Student Sahayak API is running"


@app.post("/analyze-test", response_model=AnalysisResult)
@limiter.limit(config.RATE_LIMIT_PER_IP)
async def analyze_test(
    request: Request,
    body: AnalyzeTestRequest,
    analysis_engine: ScoreAnalysisEngine = Depends(get_analysis_engine),
):
    logger.info("Received analyze-test request with %d answers", len(body.answers or []))
    try:
        return await analysis_engine.aggregate(body.answers, status=body.status)
    except AnalysisError:
        raise
    except Exception as exc:
        logger.exception("Unexpected error during test analysis")
        raise GenerationError(details=str(exc)) from exc


@app.post("/create-order", status_code=201, response_model=OrderOut)
async def create_order(
    body: CreateOrderRequest,
    payments: RazorpayClient = Depends(get_payment_client),
):
    try:
        order = await payments.create_order(body.amount, body.currency, body.receipt)
    except PaymentConfigError as exc:
        logger.error("Payment gateway is not configured: %s", exc)
        raise HTTPException(status_code=500, detail="Payment gateway is not configured.") from exc
    except PaymentError as exc:
        logger.error("Order creation failed: %s", exc)
        raise HTTPException(status_code=502, detail="Failed to create order") from exc

    return OrderOut(
        order_id=order["id"],
        amount=order["amount"],
        currency=order["currency"],
        receipt=order.get("receipt"),
        status=order["status"],
        notes=order.get("notes"),
    )


@app.post("/verify-payment")
async def verify_payment(
    body: VerifyPaymentRequest,
    payments: RazorpayClient = Depends(get_payment_client),
):
    try:
        verified = payments.verify_signature(
            body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature
        )
    except PaymentConfigError as exc:
        raise HTTPException(status_code=500, detail="Payment gateway is not configured.") from exc

    if not verified:
        raise HTTPException(status_code=400, detail="Invalid payment signature.")
    logger.info("Payment %s verified for order %s", body.razorpay_payment_id, body.razorpay_order_id)
    return {"verified": True}

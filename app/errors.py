class AnalysisError(Exception):
    """Base class for failures surfaced by the test-analysis flow.

    ``message`` is safe to show to the student; ``error`` is the short
    classification returned alongside it.
    """

    status_code = 500
    error = "Analyze test failed"
    default_message = "Failed to analyze test responses."

    def __init__(self, message: str = "", *, details: str = ""):
        self.message = message or self.default_message
        self.details = details
        super().__init__(details or self.message)


class ValidationError(AnalysisError):
    """The request carried no usable answers."""

    status_code = 400
    error = "Invalid request"
    default_message = "answers required"


class ConfigurationError(AnalysisError):
    """The text-generation service is unconfigured or unreachable."""

    status_code = 500
    error = "AI service not configured"
    default_message = "AI service is not configured."


class RateLimitedError(AnalysisError):
    status_code = 503
    error = "API quota exceeded"
    default_message = "AI service quota exceeded. Please try again in a few minutes."


class GenerationError(AnalysisError):
    status_code = 500
    error = "Analyze test failed"
    default_message = "Failed to analyze test responses."


_RATE_LIMIT_MARKERS = ("quota", "too many requests")


def is_rate_limit_message(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)

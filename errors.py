# errors.py
"""
Error types raised by the scanner services and the table that maps raw
vision-service failures onto them.
"""
from typing import Callable, List, Optional, Tuple, Type


class CardScanError(Exception):
    """Base class for every error surfaced to the user."""


class ConfigurationError(CardScanError):
    pass


class SessionStateError(CardScanError):
    """Raised when a capture session is asked to do something out of order."""


class PublishError(CardScanError):
    pass


class ExtractionError(CardScanError):
    pass


class InvalidCredentialError(ExtractionError):
    pass


class QuotaExceededError(ExtractionError):
    pass


class PermissionDeniedError(ExtractionError):
    pass


class IpRestrictedError(ExtractionError):
    pass


class ModelNotFoundError(ExtractionError):
    """One candidate model is unknown; the caller moves on to the next one."""


class ModelUnavailableError(ExtractionError):
    """Every candidate model was unknown to the service."""


def _status(exc: BaseException) -> Optional[int]:
    return getattr(exc, "status_code", None)


def _mentions(*needles: str) -> Callable[[BaseException], bool]:
    lowered = [n.lower() for n in needles]

    def match(exc: BaseException) -> bool:
        message = str(exc).lower()
        return any(n in message for n in lowered)
    return match


def _status_is(code: int) -> Callable[[BaseException], bool]:
    return lambda exc: _status(exc) == code


# Checked in order, first match wins. IP restriction comes before the generic
# 403 rule because both arrive as permission failures.
ERROR_RULES: List[Tuple[Callable[[BaseException], bool], Type[ExtractionError], str]] = [
    (
        _mentions("API_KEY_IP_ADDRESS_BLOCKED", "violates this restriction", "ip address"),
        IpRestrictedError,
        "API key IP restriction: the key only accepts requests from specific IP "
        "addresses. Allow the current IP in the provider console.",
    ),
    (
        _mentions("API_KEY_INVALID", "invalid_api_key", "incorrect api key"),
        InvalidCredentialError,
        "Invalid API key. Check OPENAI_API_KEY in your .env file.",
    ),
    (
        _status_is(401),
        InvalidCredentialError,
        "Invalid API key. Check OPENAI_API_KEY in your .env file.",
    ),
    (
        _mentions("QUOTA_EXCEEDED", "insufficient_quota", "exceeded your current quota"),
        QuotaExceededError,
        "API quota exceeded. Check the usage limits of your account.",
    ),
    (
        _status_is(429),
        QuotaExceededError,
        "API rate limit or quota exceeded. Check the usage limits of your account.",
    ),
    (
        _mentions("PERMISSION_DENIED"),
        PermissionDeniedError,
        "Permission denied. Make sure the API key has access to vision models.",
    ),
    (
        _status_is(403),
        PermissionDeniedError,
        "Permission denied. Make sure the API key has access to vision models.",
    ),
    (
        _mentions("model_not_found", "not found", "does not exist", "404"),
        ModelNotFoundError,
        "Model not found. It may not be available for this API key or region.",
    ),
    (
        _status_is(404),
        ModelNotFoundError,
        "Model not found. It may not be available for this API key or region.",
    ),
]


def classify_error(exc: BaseException) -> ExtractionError:
    """Map a raw service exception onto the extraction error taxonomy."""
    if isinstance(exc, ExtractionError):
        return exc
    for matches, error_type, message in ERROR_RULES:
        if matches(exc):
            return error_type(f"{message} ({exc})")
    return ExtractionError(f"Failed to extract text: {exc or 'Unknown error occurred'}")

"""Error taxonomy, HTTP/transport error mapping, and severity classification."""

from __future__ import annotations

import logging

import httpx


class EnhancerError(Exception):
    """Base class for all pipeline errors."""

    code = "ENHANCER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.attempts: int | None = None


class ConfigurationError(EnhancerError):
    """Invalid or missing configuration. Fatal at startup."""

    code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class NetworkError(EnhancerError):
    """Transport-level failure (DNS, refused, reset, timeout, blocked)."""

    code = "NETWORK_ERROR"

    def __init__(self, message: str, url: str | None = None, network_code: str | None = None):
        super().__init__(message)
        self.url = url
        self.network_code = network_code


class ApiError(EnhancerError):
    """Upstream HTTP error. Retryability depends on the status code."""

    code = "API_ERROR"

    def __init__(
        self,
        message: str,
        service: str = "API",
        status_code: int | None = None,
        payload=None,
    ):
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.payload = payload


class AuthenticationError(ApiError):
    code = "AUTHENTICATION_ERROR"


class NotFoundError(ApiError):
    code = "NOT_FOUND"


class RateLimitError(ApiError):
    """HTTP 429. Carries the upstream retry-after hint in seconds, if any."""

    code = "RATE_LIMIT_ERROR"

    def __init__(
        self,
        message: str,
        service: str = "API",
        retry_after: float | None = None,
        payload=None,
    ):
        super().__init__(message, service=service, status_code=429, payload=payload)
        self.retry_after = retry_after


class OperationTimeoutError(EnhancerError, TimeoutError):
    code = "TIMEOUT_ERROR"

    def __init__(self, message: str, operation: str = "", timeout: float | None = None):
        super().__init__(message)
        self.operation = operation
        self.timeout = timeout


class ValidationError(EnhancerError):
    """Data failed a structural or content invariant."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, details=None):
        super().__init__(message)
        self.field = field
        self.details = details


class ScrapingError(EnhancerError):
    """A page could not be scraped. ``reason`` is a short machine code."""

    code = "SCRAPING_ERROR"

    def __init__(
        self,
        message: str,
        url: str,
        reason: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.reason = reason
        self.status_code = status_code


class ExtractionError(ScrapingError):
    """Both extraction strategies failed for a URL."""

    code = "EXTRACTION_ERROR"


class AIProcessingError(EnhancerError):
    code = "AI_PROCESSING_ERROR"

    def __init__(self, message: str, model: str | None = None):
        super().__init__(message)
        self.model = model


class EnhancementError(AIProcessingError):
    """The rewrite could not produce a usable article."""

    code = "ENHANCEMENT_ERROR"


# --- Mapping from httpx ---


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _response_payload(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return response.text or None


def _payload_message(payload) -> str | None:
    if isinstance(payload, dict):
        message = payload.get("message")
        if not message and isinstance(payload.get("error"), dict):
            message = payload["error"].get("message")
        if not message and isinstance(payload.get("error"), str):
            message = payload["error"]
        return message
    if isinstance(payload, str) and payload.strip():
        return payload.strip()[:200]
    return None


def error_from_response(response: httpx.Response, service: str = "API") -> EnhancerError:
    """Map a non-success HTTP response onto the error taxonomy."""
    status = response.status_code
    payload = _response_payload(response)
    detail = _payload_message(payload)
    message = f"{service} error ({status})" + (f": {detail}" if detail else "")

    if status in (401, 403):
        return AuthenticationError(
            f"{service} authentication failed ({status}) - check API key",
            service=service, status_code=status, payload=payload,
        )
    if status == 404:
        return NotFoundError(message, service=service, status_code=status, payload=payload)
    if status == 422:
        details = payload.get("errors", payload) if isinstance(payload, dict) else payload
        return ValidationError(
            f"{service} validation failed: {details}", field="payload", details=details,
        )
    if status == 429:
        retry_after = _retry_after(response)
        hint = f" - retry after {retry_after:g}s" if retry_after is not None else ""
        return RateLimitError(
            f"{service} rate limit exceeded{hint}",
            service=service, retry_after=retry_after, payload=payload,
        )
    return ApiError(message, service=service, status_code=status, payload=payload)


def error_from_transport(exc: Exception, url: str | None = None) -> EnhancerError:
    """Map an httpx/OS transport exception onto NetworkError or OperationTimeoutError."""
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return OperationTimeoutError(f"Request timeout: {url}", operation=url or "", timeout=None)
    if isinstance(exc, httpx.TooManyRedirects):
        return NetworkError(f"Too many redirects: {url}", url, "too_many_redirects")

    text = str(exc).lower()
    if isinstance(exc, ConnectionRefusedError) or "refused" in text:
        network_code = "connection_refused"
    elif isinstance(exc, ConnectionResetError) or "reset" in text:
        network_code = "connection_reset"
    elif "name or service not known" in text or "nodename nor servname" in text \
            or "getaddrinfo" in text or "name resolution" in text:
        network_code = "dns"
    else:
        network_code = "network"
    return NetworkError(f"Network error for {url}: {exc}", url, network_code)


# --- Classification ---


def severity(exc: BaseException) -> str:
    if isinstance(exc, ConfigurationError):
        return "critical"
    if isinstance(exc, ValidationError):
        return "low"
    if isinstance(exc, (NetworkError, OperationTimeoutError, RateLimitError)):
        return "medium"
    if isinstance(exc, ApiError):
        if exc.status_code is not None and exc.status_code >= 500:
            return "high"
        return "medium"
    if isinstance(exc, ScrapingError):
        return "low"
    if isinstance(exc, AIProcessingError):
        return "high"
    return "unknown"


def user_message(exc: BaseException) -> str:
    """Short human-readable cause for CLI output."""
    if isinstance(exc, ConfigurationError):
        lines = [f"Configuration issue: {exc.message}"]
        lines.extend(f"  - {e}" for e in exc.errors)
        return "\n".join(lines)
    if isinstance(exc, AuthenticationError):
        return f"Authentication failed for {exc.service}. Check your API credentials."
    if isinstance(exc, RateLimitError):
        return f"Rate limit exceeded for {exc.service}. Try again later."
    if isinstance(exc, ValidationError):
        return f"Invalid data: {exc.message}"
    if isinstance(exc, OperationTimeoutError):
        return f"Operation timed out: {exc.message}"
    if isinstance(exc, NetworkError):
        return f"Network connectivity issue: {exc.message}"
    if isinstance(exc, ApiError):
        return f"Service error ({exc.service}): {exc.message}"
    if isinstance(exc, ScrapingError):
        return f"Unable to extract content from {exc.url}. The site may be blocking automated access."
    if isinstance(exc, AIProcessingError):
        return f"AI processing failed: {exc.message}"
    return f"Unexpected error: {exc}"


_SEVERITY_LEVELS = {
    "critical": logging.CRITICAL,
    "high": logging.ERROR,
    "medium": logging.WARNING,
    "low": logging.INFO,
}


def log_error(logger: logging.Logger, exc: BaseException, operation: str, **context) -> None:
    """Log a caught error at a level derived from its severity."""
    level_name = severity(exc)
    level = _SEVERITY_LEVELS.get(level_name, logging.ERROR)
    code = getattr(exc, "code", type(exc).__name__)
    attempts = getattr(exc, "attempts", None)
    extra = " ".join(f"{k}={v}" for k, v in context.items())
    logger.log(
        level,
        "%s failed [%s severity=%s attempts=%s] %s%s",
        operation, code, level_name, attempts if attempts is not None else "-",
        exc, f" ({extra})" if extra else "",
    )

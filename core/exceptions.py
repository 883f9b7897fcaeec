from typing import Optional


class VideoServiceError(Exception):
    """
    Base class for all application-specific exceptions.
    Carries the HTTP status the request boundary should answer with,
    and captures the original exception for debugging if needed.
    """

    status_code: int = 500

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


# --- Input Exceptions ---


class ValidationException(VideoServiceError):
    """
    Raised when the prompt is missing, blank, too long, or the
    generation parameters are malformed. User-correctable.
    """

    status_code = 400


# --- Upstream Exceptions (Inference Provider Failures) ---


class RateLimitedError(VideoServiceError):
    """
    Upstream answered 429. Retryable after backoff, the caller decides when.
    """

    status_code = 429


class UpstreamUnavailableError(VideoServiceError):
    """
    Upstream answered 5xx or could not be reached.
    Maps to HTTP 503.
    """

    status_code = 503


class UpstreamRejectedError(VideoServiceError):
    """
    Upstream answered any other non-2xx status.
    The status is passed through; not automatically retryable.
    """

    def __init__(self, message: str, status_code: int, original_error: Optional[Exception] = None):
        super().__init__(message, original_error)
        self.status_code = status_code


class GenerationTimeoutError(VideoServiceError):
    """
    The outbound call exceeded the generation timeout and was cancelled.
    Maps to HTTP 408.
    """

    status_code = 408


class MalformedUpstreamResponseError(VideoServiceError):
    """
    Upstream answered 2xx but the body lacks choices[0].message.
    Treated as an internal error.
    """

    status_code = 500


# --- Infrastructure Exceptions ---


class StorageError(VideoServiceError):
    """
    Raised when the library's key-value slot cannot be written.
    Never surfaced through HTTP; the library store reports it as a boolean.
    """

    pass

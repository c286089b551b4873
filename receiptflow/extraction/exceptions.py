from typing import Any, Optional

from receiptflow.common.exceptions import AppError


class ExtractionError(AppError):
    """
    Base for every failure of the extraction path.

    Instances are returned to the caller as values, not raised past the
    adapter. `status` keeps the provider's HTTP-like code and `raw_body`
    whatever the provider sent back, both for diagnostics.
    """
    kind = "extraction_error"

    def __init__(self, message: str, status: Optional[int] = None, raw_body: Any = None):
        super().__init__(message)
        self.status = status
        self.raw_body = raw_body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status={self.status!r})"


class ConfigurationError(ExtractionError):
    """No credential configured for the extraction provider"""
    kind = "configuration"


class RateLimited(ExtractionError):
    """Provider rejected the call with 429"""
    kind = "rate_limited"


class QuotaExceeded(ExtractionError):
    """Provider billing quota (402) or local scan quota exhausted"""
    kind = "quota_exceeded"


class MalformedResponse(ExtractionError):
    """Provider reply is missing, not JSON, or not an object"""
    kind = "malformed_response"


class ProviderError(ExtractionError):
    """Any other provider failure, timeouts included"""
    kind = "provider_error"

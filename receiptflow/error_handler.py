from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from receiptflow.common.exceptions import FileValidationError
from receiptflow.extraction.exceptions import (
    ConfigurationError,
    RateLimited,
    QuotaExceeded,
    MalformedResponse,
    ProviderError,
    ExtractionError,
)


def _extraction_error_content(exc: ExtractionError) -> dict:
    return {"detail": exc.message, "kind": exc.kind, "provider_status": exc.status}


def exception_handler(app: FastAPI) -> None:
    """
    Registers global exception handlers for the FastAPI application.
    Translates domain exceptions into HTTP responses.
    """

    @app.exception_handler(FileValidationError)
    async def file_validation_error_handler(request: Request, exc: FileValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc)},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=_extraction_error_content(exc),
        )

    @app.exception_handler(RateLimited)
    async def rate_limited_handler(request: Request, exc: RateLimited):
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=_extraction_error_content(exc),
        )

    @app.exception_handler(QuotaExceeded)
    async def quota_exceeded_handler(request: Request, exc: QuotaExceeded):
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content=_extraction_error_content(exc),
        )

    @app.exception_handler(MalformedResponse)
    async def malformed_response_handler(request: Request, exc: MalformedResponse):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_extraction_error_content(exc),
        )

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError):
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": "Extraction provider temporarily unavailable", "kind": exc.kind, "provider_status": exc.status},
        )

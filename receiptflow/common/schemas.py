from pydantic import BaseModel, ConfigDict


class AppBaseModel(BaseModel):
    """
    Global base model for the application.
    Centralizes Pydantic configuration (strict mode, stripping, etc.).
    """
    model_config = ConfigDict(
        strict=True,                # No implicit type coercion (ex: "1" != 1)
        str_strip_whitespace=True,  # Auto-strip whitespace from strings
        validate_assignment=True,   # Validate values even when setting attributes after creation
        from_attributes=True,       # Build from plain objects (e.g. rows handed in by a reader)
        frozen=False                # Allow mutation (default)
    )


class RequestModel(AppBaseModel):
    """
    Base for JSON request bodies.

    Request payloads arrive as JSON, where dates and decimals are strings,
    so coercion has to stay on for them.
    """
    model_config = ConfigDict(strict=False)

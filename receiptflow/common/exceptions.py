class AppError(Exception):
    """Base class for all application exceptions."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class FileValidationError(AppError):
    """Uploaded file is not a supported, non-empty receipt image."""
    pass

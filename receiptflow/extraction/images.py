from typing import Optional

from receiptflow.common.exceptions import FileValidationError

DEFAULT_MIME_TYPE = "image/jpeg"

# Magic bytes dla obsługiwanych formatów obrazów
ALLOWED_MAGIC_BYTES = {
    b'\xff\xd8\xff': 'image/jpeg',
    b'\x89\x50\x4e\x47': 'image/png',
    b'\x52\x49\x46\x46': 'image/webp',
}


def detect_mime_type(data: bytes) -> Optional[str]:
    """Returns the MIME type recognised from magic bytes, or None."""
    for magic, mime in ALLOWED_MAGIC_BYTES.items():
        if data.startswith(magic):
            # RIFF to także WAV/AVI - WEBP ma sygnaturę na offsecie 8
            if mime == 'image/webp' and data[8:12] != b'WEBP':
                continue
            return mime
    return None


def sniff_mime_type(data: bytes) -> str:
    return detect_mime_type(data) or DEFAULT_MIME_TYPE


def validate_image(data: bytes, max_size: int) -> str:
    """
    Waliduje przesłany obraz: rozmiar i magic bytes.

    Returns:
        Wykryty typ MIME

    Raises:
        FileValidationError: Jeśli walidacja się nie powiedzie
    """
    if len(data) < 4:
        raise FileValidationError("File is too small or corrupted")

    if len(data) > max_size:
        raise FileValidationError(f"File too large. Max size: {max_size / (1024 * 1024)}MB")

    mime_type = detect_mime_type(data)
    if not mime_type:
        raise FileValidationError("Invalid file format. Allowed: JPEG, PNG, WEBP")

    return mime_type

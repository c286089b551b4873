import time

from fastapi import APIRouter, File, UploadFile

from receiptflow.config import settings
from receiptflow.extraction.dependencies import ExtractionAdapterDependency
from receiptflow.extraction.exceptions import ExtractionError
from receiptflow.extraction.images import validate_image
from receiptflow.extraction.schemas import ExtractReceiptResponse

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.post("/extract", response_model=ExtractReceiptResponse)
async def extract_receipt(
    adapter: ExtractionAdapterDependency,
    file: UploadFile = File(..., description="Receipt image (JPEG, PNG, WEBP)"),
) -> ExtractReceiptResponse:
    """
    Extract structured data from a receipt image.

    **File Requirements:**
    - Formats: JPEG, PNG, WEBP
    - Max size: MAX_IMAGE_SIZE (10MB by default)

    **Response:**
    - Success (200): extracted receipt; `is_partial` asks for the next page
    - Error (400): Invalid file format or size
    - Error (402): Provider quota exceeded
    - Error (422): Provider reply could not be read
    - Error (429): Provider rate limit exceeded
    - Error (502): Provider failure or timeout
    - Error (503): Provider credential not configured
    """
    start_time = time.perf_counter()

    image_bytes = await file.read()
    mime_type = validate_image(image_bytes, settings.MAX_IMAGE_SIZE)

    result = await adapter.extract(image_bytes, mime_type=mime_type)

    # Błędy ekstrakcji są wartościami; tu oddajemy je globalnemu exception handlerowi
    if isinstance(result, ExtractionError):
        raise result

    return ExtractReceiptResponse(
        success=True,
        message="Scan the next page to complete the receipt" if result.is_partial else "Extraction completed",
        is_partial=result.is_partial,
        data=result,
        execution_time=time.perf_counter() - start_time,
    )

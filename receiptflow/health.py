from fastapi import APIRouter

from receiptflow.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check; reports whether the extraction provider is configured"""
    return {
        "status": "ok",
        "service": "receiptflow-api",
        "extraction_configured": bool(settings.GEMINI_API_KEY),
    }

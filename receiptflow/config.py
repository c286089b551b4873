from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # App
    ENV: str = "development"
    PORT: int = 8000
    WEB_APP_URL: str | None = None  # Domena frontendu (CORS w produkcji)

    # Gemini (vision extraction)
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.5-flash"  # Domyślny model
    GEMINI_TIMEOUT: int = 30  # Timeout w sekundach
    EXTRACTION_TEMPERATURE: float = 0.1  # Niska temperatura = stabilniejsze liczby

    # Upload validation
    MAX_IMAGE_SIZE: int = 10 * 1024 * 1024  # 10MB

    # Category suggestions
    SUGGESTION_HISTORY_MONTHS: int = 6  # Okno historii wydatków
    SUGGESTION_RECENCY_DAYS: int = 30  # Okno "ostatnio używane"
    SUGGESTION_MIN_SCORE: float = 0.1  # Minimalny wynik, aby sugestia była zwrócona
    SUGGESTION_LIMIT: int = 5  # Maksymalna liczba sugestii

    model_config = {
        "env_file": ".env",
        "extra": "ignore"
    }

settings = Settings()

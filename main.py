import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from receiptflow.config import settings
from receiptflow.health import router as health_router
from receiptflow.extraction.routes import router as extraction_router
from receiptflow.categories.routes import router as categories_router
from receiptflow.error_handler import exception_handler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Set log level for application modules to INFO
logging.getLogger('receiptflow').setLevel(logging.INFO)

# Keep external libraries at WARNING to reduce noise
logging.getLogger('uvicorn').setLevel(logging.WARNING)
logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

app = FastAPI(
    title="Receiptflow API",
    version="1.0.0",
    docs_url="/docs" if settings.ENV == "development" else None,
)

# CORS Configuration
if settings.ENV == "development":
    origins = ["http://localhost:3000", "http://localhost:5173"]
else:
    origins = [settings.WEB_APP_URL] if settings.WEB_APP_URL else []

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

exception_handler(app)

app.include_router(health_router, tags=["health"])
app.include_router(extraction_router, prefix="/api", tags=["receipts"])
app.include_router(categories_router, prefix="/api/categories", tags=["categories"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT, reload=settings.ENV == "development")

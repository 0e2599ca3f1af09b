from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime
import os

from ..deps import get_db
from ...config import settings

router = APIRouter()

# No trailing slash on these paths
@router.get("", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION
    }

@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(db: Session = Depends(get_db)):
    """Check if the service is ready to handle requests"""
    if settings.STORAGE_BACKEND == "database":
        try:
            db.execute(text("SELECT 1"))
            storage_status = "connected"
        except SQLAlchemyError as e:
            return {
                "status": "not ready",
                "storage": {"backend": "database", "status": f"error: {str(e)}"}
            }
    else:
        storage_status = "in-memory"

    # Check upload directory
    upload_dir_exists = os.path.exists(settings.UPLOAD_DIR)
    upload_dir_writable = os.access(settings.UPLOAD_DIR, os.W_OK) if upload_dir_exists else False

    return {
        "status": "ready",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {
            "storage": {
                "backend": settings.STORAGE_BACKEND,
                "status": storage_status
            },
            "upload_directory": {
                "exists": upload_dir_exists,
                "writable": upload_dir_writable
            },
            "ai_service": {
                "base_url": settings.AI_BASE_URL,
                "model": settings.AI_MODEL,
                "text_extraction": settings.TEXT_EXTRACTION_MODE,
                "fallback": settings.EXTRACTION_FALLBACK
            }
        }
    }

@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check():
    """Simple liveness check for container orchestration"""
    return {"status": "alive"}

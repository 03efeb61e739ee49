from fastapi import APIRouter
from typing import Any

from taskboard.core.config import settings
from taskboard.core.time_utils import utc_now

router = APIRouter()

@router.get("", response_model=dict[str, Any])
def health_check() -> Any:
    """
    Health check endpoint.
    """
    return {"status": "ok", "service": settings.PROJECT_NAME, "timestamp": utc_now().isoformat()}

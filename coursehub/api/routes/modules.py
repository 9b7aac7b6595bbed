"""
Enrolled Module API Endpoints

POST /api/v1/modules/{module_id}/watch - Mark a video module watched
"""
import logging
import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from coursehub.api.dependencies import get_enrollment_service
from coursehub.api.routes.enrollments import ModuleOut
from coursehub.services.enrollment_service import EnrollmentService
from coursehub.timeutils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/modules", tags=["modules"])


class WatchRequest(BaseModel):
    """The student watching the module"""
    student_id: str = Field(..., min_length=1)


class WatchResult(BaseModel):
    module: ModuleOut
    watched_modules: int = Field(..., ge=0)
    total_modules: int = Field(..., ge=0)
    enrollment_completed: bool


class WatchResponse(BaseModel):
    data: WatchResult
    metadata: Dict[str, Any]


@router.post("/{module_id}/watch", response_model=WatchResponse)
async def watch_module(
    request: WatchRequest,
    module_id: uuid.UUID = Path(..., description="Enrolled module UUID"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    """
    Mark a module watched.

    Watching the last unwatched module completes the enrollment; the
    response reports whether this call did so.

    Raises:
        403: Module belongs to another student, or access has lapsed
        404: Module not found
    """
    result = await service.watch_module(module_id, request.student_id)
    return {
        "data": {**result, "module": ModuleOut.model_validate(result["module"])},
        "metadata": {"timestamp": utcnow().isoformat()},
    }

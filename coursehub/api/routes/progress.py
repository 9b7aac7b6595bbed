"""
Progress API Endpoints

GET  /api/v1/progress/{course_id}/students/{student_id}
POST /api/v1/progress/{course_id}/students/{student_id}/lessons/{lesson_id}
POST /api/v1/progress/{course_id}/students/{student_id}/quizzes/{quiz_id}/attempts
POST /api/v1/progress/{course_id}/students/{student_id}/assignments/{assignment_id}/submissions
POST /api/v1/progress/{course_id}/students/{student_id}/assignments/{assignment_id}/submissions/{n}/grade

Every write returns the recomputed progress document; completing the
enrollment's criteria completes the enrollment as a side effect.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from coursehub.api.dependencies import get_progress_service
from coursehub.services.progress_aggregator import ProgressState
from coursehub.services.progress_service import ProgressService
from coursehub.timeutils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/progress", tags=["progress"])


# Pydantic models for request/response validation


class LessonUpdateRequest(BaseModel):
    status: str = Field(..., pattern="^(not_started|in_progress|completed)$")
    time_spent: float = Field(0, ge=0, description="Seconds spent in this session")


class QuizAttemptRequest(BaseModel):
    score: float = Field(..., ge=0)
    passing_score: float = Field(..., ge=0)
    answers: List[Dict[str, Any]] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class AssignmentSubmissionRequest(BaseModel):
    content: str = Field(..., min_length=1)
    files: List[Dict[str, Any]] = Field(default_factory=list)
    score: Optional[float] = Field(None, ge=0)


class AssignmentGradeRequest(BaseModel):
    score: float = Field(..., ge=0)
    feedback: Optional[str] = None
    graded_by: Optional[str] = None


class ProgressDocument(BaseModel):
    """Progress as stored: camelCase entries plus the weighted rollup"""
    student_id: str
    course_id: str
    overall_progress: int = Field(..., ge=0, le=100)
    lesson_progress: List[Dict[str, Any]]
    quiz_progress: List[Dict[str, Any]]
    assignment_progress: List[Dict[str, Any]]
    meta: Dict[str, Any]
    last_accessed: Optional[datetime] = None


class ProgressResponse(BaseModel):
    data: ProgressDocument
    metadata: Dict[str, Any]


def _progress(student_id: str, course_id: str, state: ProgressState) -> Dict[str, Any]:
    return {
        "data": {
            "student_id": student_id,
            "course_id": course_id,
            "overall_progress": state.overall_progress,
            "lesson_progress": [p.to_dict() for p in state.lessons],
            "quiz_progress": [p.to_dict() for p in state.quizzes],
            "assignment_progress": [p.to_dict() for p in state.assignments],
            "meta": state.meta,
            "last_accessed": state.last_accessed,
        },
        "metadata": {"timestamp": utcnow().isoformat()},
    }


# API Endpoints


@router.get("/{course_id}/students/{student_id}", response_model=ProgressResponse)
async def get_progress(
    course_id: str = Path(..., description="Course identifier"),
    student_id: str = Path(..., description="Student identifier"),
    service: ProgressService = Depends(get_progress_service),
) -> Dict[str, Any]:
    """Current progress; an enrollment with no activity yet reports 0%"""
    state = await service.get_progress(student_id, course_id)
    return _progress(student_id, course_id, state)


@router.post("/{course_id}/students/{student_id}/lessons/{lesson_id}", response_model=ProgressResponse)
async def update_lesson(
    request: LessonUpdateRequest,
    course_id: str = Path(..., description="Course identifier"),
    student_id: str = Path(..., description="Student identifier"),
    lesson_id: str = Path(..., description="Lesson identifier"),
    service: ProgressService = Depends(get_progress_service),
) -> Dict[str, Any]:
    """
    Record lesson activity.

    Raises:
        403: Enrollment does not grant access
        404: No enrollment for the pair
    """
    state = await service.record_lesson_progress(
        student_id, course_id, lesson_id, request.status, request.time_spent
    )
    return _progress(student_id, course_id, state)


@router.post("/{course_id}/students/{student_id}/quizzes/{quiz_id}/attempts", response_model=ProgressResponse)
async def record_quiz_attempt(
    request: QuizAttemptRequest,
    course_id: str = Path(..., description="Course identifier"),
    student_id: str = Path(..., description="Student identifier"),
    quiz_id: str = Path(..., description="Quiz identifier"),
    service: ProgressService = Depends(get_progress_service),
) -> Dict[str, Any]:
    state = await service.record_quiz_attempt(
        student_id,
        course_id,
        quiz_id,
        score=request.score,
        passing_score=request.passing_score,
        answers=request.answers,
        started_at=request.started_at,
        completed_at=request.completed_at,
    )
    return _progress(student_id, course_id, state)


@router.post(
    "/{course_id}/students/{student_id}/assignments/{assignment_id}/submissions",
    response_model=ProgressResponse,
)
async def submit_assignment(
    request: AssignmentSubmissionRequest,
    course_id: str = Path(..., description="Course identifier"),
    student_id: str = Path(..., description="Student identifier"),
    assignment_id: str = Path(..., description="Assignment identifier"),
    service: ProgressService = Depends(get_progress_service),
) -> Dict[str, Any]:
    state = await service.submit_assignment(
        student_id,
        course_id,
        assignment_id,
        content=request.content,
        score=request.score,
        files=request.files,
    )
    return _progress(student_id, course_id, state)


@router.post(
    "/{course_id}/students/{student_id}/assignments/{assignment_id}/submissions/{submission_number}/grade",
    response_model=ProgressResponse,
)
async def grade_assignment(
    request: AssignmentGradeRequest,
    course_id: str = Path(..., description="Course identifier"),
    student_id: str = Path(..., description="Student identifier"),
    assignment_id: str = Path(..., description="Assignment identifier"),
    submission_number: int = Path(..., ge=1, description="1-based submission number"),
    service: ProgressService = Depends(get_progress_service),
) -> Dict[str, Any]:
    """
    Grade a submission.

    Raises:
        404: Enrollment, assignment or submission not found
    """
    state = await service.grade_assignment(
        student_id,
        course_id,
        assignment_id,
        submission_number,
        score=request.score,
        feedback=request.feedback,
        graded_by=request.graded_by,
    )
    return _progress(student_id, course_id, state)

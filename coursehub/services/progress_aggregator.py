"""
Course Progress Aggregator

Rolls lesson, quiz and assignment completion into one overall percentage:
- Lessons (50% weight): status == completed
- Quizzes (30% weight): status == completed (best attempt passed)
- Assignments (20% weight): status == graded

`overall_progress` is always derived here; callers update a sub-list and
then recompute.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from coursehub.exceptions import InvalidInputError, NotFoundError
from coursehub.rounding import round_percent
from coursehub.timeutils import ensure_utc, parse_datetime, utcnow

PROGRESS_WEIGHTS = {
    "lessons": 50,
    "quizzes": 30,
    "assignments": 20,
}

LESSON_STATUSES = ("not_started", "in_progress", "completed")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class LessonProgress:
    lesson_id: str
    status: str = "not_started"
    time_spent: float = 0
    completed_at: Optional[datetime] = None
    last_accessed: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lessonId": self.lesson_id,
            "status": self.status,
            "timeSpent": self.time_spent,
            "completedAt": _iso(self.completed_at),
            "lastAccessed": _iso(self.last_accessed),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LessonProgress":
        return cls(
            lesson_id=data["lessonId"],
            status=data.get("status", "not_started"),
            time_spent=data.get("timeSpent", 0),
            completed_at=parse_datetime(data.get("completedAt")),
            last_accessed=parse_datetime(data.get("lastAccessed")),
        )


@dataclass
class QuizProgress:
    quiz_id: str
    attempts: List[Dict[str, Any]] = field(default_factory=list)
    best_score: float = 0
    status: str = "not_started"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quizId": self.quiz_id,
            "attempts": self.attempts,
            "bestScore": self.best_score,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuizProgress":
        return cls(
            quiz_id=data["quizId"],
            attempts=[dict(a) for a in data.get("attempts", [])],
            best_score=data.get("bestScore", 0),
            status=data.get("status", "not_started"),
        )


@dataclass
class AssignmentProgress:
    assignment_id: str
    submissions: List[Dict[str, Any]] = field(default_factory=list)
    best_score: float = 0
    status: str = "not_started"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignmentId": self.assignment_id,
            "submissions": self.submissions,
            "bestScore": self.best_score,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssignmentProgress":
        return cls(
            assignment_id=data["assignmentId"],
            submissions=[dict(s) for s in data.get("submissions", [])],
            best_score=data.get("bestScore", 0),
            status=data.get("status", "not_started"),
        )


@dataclass
class ProgressState:
    """Plain-data view of one student's progress in one course"""
    lessons: List[LessonProgress] = field(default_factory=list)
    quizzes: List[QuizProgress] = field(default_factory=list)
    assignments: List[AssignmentProgress] = field(default_factory=list)
    overall_progress: int = 0
    meta: Dict[str, float] = field(default_factory=dict)
    last_accessed: Optional[datetime] = None

    def find_lesson(self, lesson_id: str) -> Optional[LessonProgress]:
        return next((p for p in self.lessons if p.lesson_id == lesson_id), None)

    def find_quiz(self, quiz_id: str) -> Optional[QuizProgress]:
        return next((p for p in self.quizzes if p.quiz_id == quiz_id), None)

    def find_assignment(self, assignment_id: str) -> Optional[AssignmentProgress]:
        return next((p for p in self.assignments if p.assignment_id == assignment_id), None)


def _ratio(completed: int, total: int) -> float:
    return completed / total if total else 0.0


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def recompute(progress: ProgressState) -> ProgressState:
    """
    Recompute overall progress and summary metrics in place.

    Formula:
        overall = round_half_up(lessons_ratio*50 + quizzes_ratio*30 + assignments_ratio*20)

    Each ratio is 0 when its list is empty. Idempotent.
    """
    completed_lessons = sum(1 for p in progress.lessons if p.status == "completed")
    completed_quizzes = sum(1 for p in progress.quizzes if p.status == "completed")
    completed_assignments = sum(1 for p in progress.assignments if p.status == "graded")

    lessons_ratio = _ratio(completed_lessons, len(progress.lessons))
    quizzes_ratio = _ratio(completed_quizzes, len(progress.quizzes))
    assignments_ratio = _ratio(completed_assignments, len(progress.assignments))

    progress.overall_progress = round_percent(
        lessons_ratio * PROGRESS_WEIGHTS["lessons"]
        + quizzes_ratio * PROGRESS_WEIGHTS["quizzes"]
        + assignments_ratio * PROGRESS_WEIGHTS["assignments"]
    )

    progress.meta = {
        "totalTimeSpent": sum(p.time_spent for p in progress.lessons),
        "averageQuizScore": _mean([p.best_score for p in progress.quizzes]),
        "averageAssignmentScore": _mean([p.best_score for p in progress.assignments]),
        "completedLessons": completed_lessons,
        "completedQuizzes": completed_quizzes,
        "completedAssignments": completed_assignments,
    }

    return progress


def apply_lesson_update(
    progress: ProgressState,
    lesson_id: str,
    status: str,
    time_spent: float = 0,
    now: Optional[datetime] = None,
) -> ProgressState:
    """Record lesson activity: time accumulates, completion is stamped once"""
    if status not in LESSON_STATUSES:
        raise InvalidInputError(f"Invalid lesson status: {status}. Must be one of: {LESSON_STATUSES}")
    if time_spent < 0:
        raise InvalidInputError("timeSpent cannot be negative")

    now = ensure_utc(now) if now else utcnow()
    lesson = progress.find_lesson(lesson_id)

    if lesson is None:
        lesson = LessonProgress(lesson_id=lesson_id)
        progress.lessons.append(lesson)

    lesson.status = status
    lesson.time_spent += time_spent
    lesson.last_accessed = now
    if status == "completed" and lesson.completed_at is None:
        lesson.completed_at = now

    progress.last_accessed = now
    return recompute(progress)


def apply_quiz_attempt(
    progress: ProgressState,
    quiz_id: str,
    score: float,
    passing_score: float,
    answers: Optional[List[Dict[str, Any]]] = None,
    started_at: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
) -> ProgressState:
    """
    Record a quiz attempt.

    The quiz status follows the latest attempt (completed when it reaches
    the passing score, failed otherwise); bestScore is the running maximum.
    """
    if score < 0 or passing_score < 0:
        raise InvalidInputError("Quiz scores cannot be negative")

    completed_at = ensure_utc(completed_at) if completed_at else utcnow()
    quiz = progress.find_quiz(quiz_id)

    if quiz is None:
        quiz = QuizProgress(quiz_id=quiz_id, best_score=score)
        progress.quizzes.append(quiz)
    else:
        quiz.best_score = max(quiz.best_score, score)

    quiz.attempts.append({
        "attemptNumber": len(quiz.attempts) + 1,
        "score": score,
        "passingScore": passing_score,
        "answers": answers or [],
        "startedAt": _iso(ensure_utc(started_at) if started_at else completed_at),
        "completedAt": _iso(completed_at),
    })
    quiz.status = "completed" if score >= passing_score else "failed"

    progress.last_accessed = completed_at
    return recompute(progress)


def apply_assignment_submission(
    progress: ProgressState,
    assignment_id: str,
    content: str,
    score: Optional[float] = None,
    files: Optional[List[Dict[str, Any]]] = None,
    now: Optional[datetime] = None,
) -> ProgressState:
    """Record an assignment submission; a scored submission counts as graded"""
    if not content:
        raise InvalidInputError("Submission content is required")
    if score is not None and score < 0:
        raise InvalidInputError("Assignment score cannot be negative")

    now = ensure_utc(now) if now else utcnow()
    assignment = progress.find_assignment(assignment_id)

    if assignment is None:
        assignment = AssignmentProgress(assignment_id=assignment_id)
        progress.assignments.append(assignment)

    assignment.submissions.append({
        "submissionNumber": len(assignment.submissions) + 1,
        "content": content,
        "files": files or [],
        "submittedAt": _iso(now),
        "score": score,
        "feedback": None,
        "gradedBy": None,
        "gradedAt": _iso(now) if score is not None else None,
    })

    if score is not None:
        assignment.best_score = max(assignment.best_score, score)
        assignment.status = "graded"
    elif assignment.status != "graded":
        assignment.status = "submitted"

    progress.last_accessed = now
    return recompute(progress)


def apply_assignment_grade(
    progress: ProgressState,
    assignment_id: str,
    submission_number: int,
    score: float,
    feedback: Optional[str] = None,
    graded_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ProgressState:
    """Grade an existing submission"""
    if score < 0:
        raise InvalidInputError("Assignment score cannot be negative")

    assignment = progress.find_assignment(assignment_id)
    if assignment is None:
        raise NotFoundError(f"No submissions for assignment {assignment_id}")

    submission = next(
        (s for s in assignment.submissions if s.get("submissionNumber") == submission_number),
        None,
    )
    if submission is None:
        raise NotFoundError(f"Submission {submission_number} not found for assignment {assignment_id}")

    now = ensure_utc(now) if now else utcnow()
    submission["score"] = score
    submission["feedback"] = feedback
    submission["gradedBy"] = graded_by
    submission["gradedAt"] = _iso(now)

    assignment.best_score = max(assignment.best_score, score)
    assignment.status = "graded"

    return recompute(progress)


def all_quizzes_passed(progress: ProgressState) -> bool:
    return all(p.status == "completed" for p in progress.quizzes)


def all_assignments_graded(progress: ProgressState) -> bool:
    return all(p.status == "graded" for p in progress.assignments)

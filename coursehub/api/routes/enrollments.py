"""
Enrollment API Endpoints

POST   /api/v1/enrollments                          - Enroll a student in a course
GET    /api/v1/enrollments/{id}                     - Fetch one enrollment
PATCH  /api/v1/enrollments/{id}                     - Partial update
DELETE /api/v1/enrollments/{id}                     - Delete with modules and progress
GET    /api/v1/enrollments                          - All enrollments (admin)
GET    /api/v1/enrollments/students                 - Enrollments grouped by student
GET    /api/v1/enrollments/student/{student_id}     - A student's enrollments
GET    /api/v1/enrollments/student/{student_id}/counts
GET    /api/v1/enrollments/course/{course_id}       - Course roster
POST   /api/v1/enrollments/complete                 - Explicit completion
POST   /api/v1/enrollments/{id}/suspend|resume|cancel
GET    /api/v1/enrollments/{id}/access
GET    /api/v1/enrollments/{id}/modules
GET    /api/v1/enrollments/{id}/emi
POST   /api/v1/enrollments/{id}/emi/installments/{n}/pay|waive
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel, ConfigDict, Field

from coursehub.api.dependencies import get_enrollment_service
from coursehub.models import EnrolledModule, Enrollment
from coursehub.services.emi_calculator import DEFAULT_GRACE_PERIOD_DAYS, MAX_INSTALLMENTS, EmiSchedule
from coursehub.services.enrollment_service import EnrollmentOptions, EnrollmentService
from coursehub.timeutils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/enrollments", tags=["enrollments"])


# Pydantic models for request/response validation


class PaymentConfirmation(BaseModel):
    """Payment data already verified by the payment gateway"""
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    signature: Optional[str] = None
    method: Optional[str] = None
    amount: float = Field(0, ge=0)
    currency: Optional[str] = None


class EmiConfig(BaseModel):
    """EMI parameters, camelCase keys as stored on the enrollment"""
    model_config = ConfigDict(populate_by_name=True)

    # Falls back to the payment amount when omitted
    total_amount: Optional[float] = Field(None, alias="totalAmount", ge=0, allow_inf_nan=False)
    down_payment: float = Field(0, alias="downPayment", ge=0, allow_inf_nan=False)
    number_of_installments: int = Field(..., alias="numberOfInstallments", ge=1, le=MAX_INSTALLMENTS)
    start_date: Optional[datetime] = Field(None, alias="startDate")
    interest_rate: float = Field(0, alias="interestRate", ge=0, allow_inf_nan=False)
    processing_fee: float = Field(0, alias="processingFee", ge=0, allow_inf_nan=False)
    grace_period_days: int = Field(DEFAULT_GRACE_PERIOD_DAYS, alias="gracePeriodDays", ge=0)

    def to_config(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class EnrollmentCreateRequest(BaseModel):
    """Request body for POST /enrollments"""
    student_id: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)
    enrollment_type: str = "individual"
    is_self_paced: bool = False
    expiry_date: Optional[datetime] = None
    payment_status: Optional[str] = None
    payment: Optional[PaymentConfirmation] = None
    is_emi: bool = False
    emi_config: Optional[EmiConfig] = None
    learning_path: str = "sequential"
    completion_criteria: Optional[Dict[str, Any]] = None
    source_info: Optional[Dict[str, Any]] = None

    def to_options(self) -> EnrollmentOptions:
        return EnrollmentOptions(
            enrollment_type=self.enrollment_type,
            is_self_paced=self.is_self_paced,
            expiry_date=self.expiry_date,
            payment_status=self.payment_status,
            payment=self.payment.model_dump() if self.payment else None,
            is_emi=self.is_emi,
            emi_config=self.emi_config.to_config() if self.emi_config else None,
            learning_path=self.learning_path,
            completion_criteria=self.completion_criteria,
            source_info=self.source_info,
        )


class EnrollmentUpdateRequest(BaseModel):
    """Request body for PATCH /enrollments/{id}; only the fields sent are applied"""
    model_config = ConfigDict(extra="forbid")

    student_id: Optional[str] = None
    course_id: Optional[str] = None
    enrollment_type: Optional[str] = None
    batch_size: Optional[int] = None
    payment_status: Optional[str] = None
    status: Optional[str] = None
    is_self_paced: Optional[bool] = None
    expiry_date: Optional[datetime] = None
    is_completed: Optional[bool] = None
    learning_path: Optional[str] = None
    completion_criteria: Optional[Dict[str, Any]] = None
    source_info: Optional[Dict[str, Any]] = None


class CompleteRequest(BaseModel):
    student_id: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)


class InstallmentPaymentRequest(BaseModel):
    paid_at: Optional[datetime] = None


class EnrollmentOut(BaseModel):
    """Enrollment as returned to clients"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    student_id: str
    course_id: str
    enrollment_type: str
    batch_size: int
    payment_status: str
    payment_type: str
    payment_details: Optional[Dict[str, Any]] = None
    emi_details: Optional[Dict[str, Any]] = None
    status: str
    enrollment_date: datetime
    is_self_paced: bool
    expiry_date: Optional[datetime] = None
    is_completed: bool
    completed_on: Optional[datetime] = None
    progress: float = Field(..., ge=0, le=100)
    learning_path: str
    completion_criteria: Dict[str, Any]
    source_info: Optional[Dict[str, Any]] = None
    last_accessed: Optional[datetime] = None


class ModuleOut(BaseModel):
    """Enrolled module as returned to clients"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    enrollment_id: uuid.UUID
    student_id: str
    course_id: str
    video_url: Optional[str] = None
    is_watched: bool


class EnrollmentResponse(BaseModel):
    data: EnrollmentOut
    metadata: Dict[str, Any]


class EnrollmentListResponse(BaseModel):
    data: List[EnrollmentOut]
    metadata: Dict[str, Any]


class StudentEnrollments(BaseModel):
    student_id: str
    enrollments: List[EnrollmentOut]


class StudentEnrollmentsResponse(BaseModel):
    data: List[StudentEnrollments]
    metadata: Dict[str, Any]


class ModuleListResponse(BaseModel):
    data: List[ModuleOut]
    metadata: Dict[str, Any]


class DataResponse(BaseModel):
    """Generic wrapper for dict payloads"""
    data: Dict[str, Any]
    metadata: Dict[str, Any]


# Helpers


def _metadata(**extra: Any) -> Dict[str, Any]:
    return {"timestamp": utcnow().isoformat(), **extra}


def _enrollment(enrollment: Enrollment, **extra: Any) -> Dict[str, Any]:
    return {"data": EnrollmentOut.model_validate(enrollment), "metadata": _metadata(**extra)}


def _schedule(schedule: EmiSchedule, enrollment_id: uuid.UUID) -> Dict[str, Any]:
    next_due = schedule.next_due()
    return {
        "data": schedule.to_dict(),
        "metadata": _metadata(
            enrollment_id=str(enrollment_id),
            outstanding_amount=schedule.outstanding_amount,
            next_due=next_due.to_dict() if next_due else None,
        ),
    }


# API Endpoints


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def create_enrollment(
    request: EnrollmentCreateRequest,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    """
    Enroll a student in a course.

    The enrollment is persisted before its per-video modules. A module
    creation failure does not fail the request: it is reported in
    `metadata.module_error` with `modules_created=0`.

    Raises:
        400: Invalid input or EMI parameters
        404: Unknown student or course
        409: Student already enrolled in the course
    """
    creation = await service.create_enrollment(
        request.student_id, request.course_id, request.to_options()
    )
    return _enrollment(
        creation.enrollment,
        modules_created=creation.modules_created,
        module_error=creation.module_error,
    )


@router.post("/complete", response_model=EnrollmentResponse)
async def complete_enrollment(
    request: CompleteRequest,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    """
    Mark a student's enrollment completed.

    Raises:
        404: No enrollment for the pair
        409: Already completed, or not in a state that can complete
    """
    enrollment = await service.mark_completed(request.student_id, request.course_id)
    return _enrollment(enrollment)


@router.get("/student/{student_id}", response_model=EnrollmentListResponse)
async def list_student_enrollments(
    student_id: str = Path(..., description="Student identifier"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    include_expired: bool = Query(False, description="Include expired enrollments"),
    limit: int = Query(50, ge=1, le=200, description="Results per page"),
    offset: int = Query(0, ge=0, description="Results offset"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    """List a student's enrollments, newest first"""
    enrollments = await service.get_enrollments_by_student(
        student_id, status=status_filter, include_expired=include_expired, limit=limit, offset=offset
    )
    return {
        "data": [EnrollmentOut.model_validate(e) for e in enrollments],
        "metadata": _metadata(count=len(enrollments), limit=limit, offset=offset),
    }


@router.get("/student/{student_id}/counts", response_model=DataResponse)
async def student_enrollment_counts(
    student_id: str = Path(..., description="Student identifier"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    counts = await service.get_enrollment_counts_by_student(student_id)
    return {"data": counts, "metadata": _metadata(student_id=student_id)}


@router.get("/course/{course_id}", response_model=EnrollmentListResponse)
async def list_course_enrollments(
    course_id: str = Path(..., description="Course identifier"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    include_expired: bool = Query(False, description="Include expired enrollments"),
    limit: int = Query(50, ge=1, le=200, description="Results per page"),
    offset: int = Query(0, ge=0, description="Results offset"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    """Course roster, newest first"""
    enrollments = await service.get_enrollments_by_course(
        course_id, status=status_filter, include_expired=include_expired, limit=limit, offset=offset
    )
    return {
        "data": [EnrollmentOut.model_validate(e) for e in enrollments],
        "metadata": _metadata(count=len(enrollments), limit=limit, offset=offset),
    }


@router.get("", response_model=EnrollmentListResponse)
async def list_enrollments(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    payment_status: Optional[str] = Query(None, description="Filter by payment status"),
    enrollment_type: Optional[str] = Query(None, description="Filter by individual or batch"),
    include_expired: bool = Query(True, description="Include expired enrollments"),
    limit: int = Query(10, ge=1, le=200, description="Results per page"),
    offset: int = Query(0, ge=0, description="Results offset"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    """
    All enrollments, newest first.

    Raises:
        400: Unknown status, payment status or enrollment type
    """
    page = await service.list_enrollments(
        status=status_filter,
        payment_status=payment_status,
        enrollment_type=enrollment_type,
        include_expired=include_expired,
        limit=limit,
        offset=offset,
    )
    return {
        "data": [EnrollmentOut.model_validate(e) for e in page.enrollments],
        "metadata": _metadata(count=len(page.enrollments), total=page.total, limit=limit, offset=offset),
    }


@router.get("/students", response_model=StudentEnrollmentsResponse)
async def list_students_with_enrollments(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    include_expired: bool = Query(False, description="Include expired enrollments"),
    limit: int = Query(10, ge=1, le=200, description="Enrollments per page"),
    offset: int = Query(0, ge=0, description="Enrollments offset"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    """Enrollments grouped by student; pagination is over enrollments"""
    page = await service.get_students_with_enrollments(
        status=status_filter, include_expired=include_expired, limit=limit, offset=offset
    )
    groups = page.by_student()
    return {
        "data": [
            {
                "student_id": group["student_id"],
                "enrollments": [EnrollmentOut.model_validate(e) for e in group["enrollments"]],
            }
            for group in groups
        ],
        "metadata": _metadata(students=len(groups), total=page.total, limit=limit, offset=offset),
    }


@router.get("/{enrollment_id}", response_model=EnrollmentResponse)
async def get_enrollment(
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    enrollment = await service.get_enrollment(enrollment_id)
    return _enrollment(enrollment)


@router.patch("/{enrollment_id}", response_model=EnrollmentResponse)
async def update_enrollment(
    request: EnrollmentUpdateRequest,
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    """
    Partially update an enrollment.

    Raises:
        400: student_id/course_id changed, or invalid field values
        404: Enrollment not found
        409: Status transition not allowed
    """
    updates = request.model_dump(exclude_unset=True)
    enrollment = await service.update_enrollment(enrollment_id, updates)
    return _enrollment(enrollment, updated_fields=sorted(updates))


@router.delete("/{enrollment_id}", response_model=DataResponse)
async def delete_enrollment(
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    result = await service.delete_enrollment(enrollment_id)
    return {"data": {"enrollment_id": str(enrollment_id), **result}, "metadata": _metadata()}


@router.post("/{enrollment_id}/suspend", response_model=EnrollmentResponse)
async def suspend_enrollment(
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    return _enrollment(await service.suspend(enrollment_id))


@router.post("/{enrollment_id}/resume", response_model=EnrollmentResponse)
async def resume_enrollment(
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    return _enrollment(await service.resume(enrollment_id))


@router.post("/{enrollment_id}/cancel", response_model=EnrollmentResponse)
async def cancel_enrollment(
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    return _enrollment(await service.cancel(enrollment_id))


@router.get("/{enrollment_id}/access", response_model=DataResponse)
async def check_access(
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    """Access decision with completion status and remaining days"""
    return {"data": await service.check_access(enrollment_id), "metadata": _metadata()}


@router.get("/{enrollment_id}/modules", response_model=ModuleListResponse)
async def list_modules(
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    modules: List[EnrolledModule] = await service.get_modules(enrollment_id)
    return {
        "data": [ModuleOut.model_validate(m) for m in modules],
        "metadata": _metadata(
            total_modules=len(modules),
            watched_modules=sum(1 for m in modules if m.is_watched),
        ),
    }


@router.get("/{enrollment_id}/emi", response_model=DataResponse)
async def get_emi_schedule(
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    """
    EMI schedule with overdue installments and missed payments assessed now.

    Raises:
        400: Enrollment is not on an EMI plan
        404: Enrollment not found
    """
    schedule = await service.get_emi_schedule(enrollment_id)
    return _schedule(schedule, enrollment_id)


@router.post("/{enrollment_id}/emi/installments/{installment_number}/pay", response_model=DataResponse)
async def pay_installment(
    request: InstallmentPaymentRequest,
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    installment_number: int = Path(..., ge=1, description="1-based installment number"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    schedule = await service.record_installment_payment(enrollment_id, installment_number, request.paid_at)
    return _schedule(schedule, enrollment_id)


@router.post("/{enrollment_id}/emi/installments/{installment_number}/waive", response_model=DataResponse)
async def waive_installment(
    enrollment_id: uuid.UUID = Path(..., description="Enrollment UUID"),
    installment_number: int = Path(..., ge=1, description="1-based installment number"),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> Dict[str, Any]:
    schedule = await service.waive_installment(enrollment_id, installment_number)
    return _schedule(schedule, enrollment_id)

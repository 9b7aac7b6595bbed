"""
EMI Schedule Calculator

Builds equated-monthly-installment schedules for course fees paid in parts:
- Principal = total amount - down payment
- Zero interest: equal split of the principal
- Non-zero interest: standard amortizing-loan installment
- Due dates advance by whole calendar months from the start date

Also tracks missed payments: pending installments past their due date plus
the grace period become overdue, and enough of them default the schedule.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from coursehub.exceptions import InvalidInputError, NotFoundError
from coursehub.rounding import round_half_up
from coursehub.timeutils import add_months, ensure_utc, parse_datetime, utcnow

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_DAYS = 5

# Overdue installments at which the schedule counts as defaulted
DEFAULT_MISSED_PAYMENT_LIMIT = 3

# Ten years of monthly payments
MAX_INSTALLMENTS = 120

INSTALLMENT_STATUSES = ("pending", "paid", "overdue", "waived")
SCHEDULE_STATUSES = ("active", "completed", "defaulted")


@dataclass
class Installment:
    """One scheduled payment"""
    installment_number: int
    amount: float
    due_date: datetime
    status: str = "pending"
    paid_at: Optional[datetime] = None

    @property
    def is_settled(self) -> bool:
        return self.status in ("paid", "waived")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "installmentNumber": self.installment_number,
            "amount": self.amount,
            "dueDate": self.due_date.isoformat(),
            "status": self.status,
            "paidAt": self.paid_at.isoformat() if self.paid_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Installment":
        return cls(
            installment_number=int(data["installmentNumber"]),
            amount=float(data["amount"]),
            due_date=parse_datetime(data["dueDate"]),
            status=data.get("status", "pending"),
            paid_at=parse_datetime(data.get("paidAt")),
        )


@dataclass
class EmiSchedule:
    """EMI configuration plus its generated installments"""
    total_amount: float
    down_payment: float
    number_of_installments: int
    start_date: datetime
    interest_rate: float
    processing_fee: float
    grace_period_days: int
    schedule: List[Installment] = field(default_factory=list)
    status: str = "active"
    missed_payments: int = 0

    @property
    def principal(self) -> float:
        return self.total_amount - self.down_payment

    @property
    def total_scheduled(self) -> float:
        return round_half_up(sum(i.amount for i in self.schedule), 2)

    @property
    def outstanding_amount(self) -> float:
        return round_half_up(sum(i.amount for i in self.schedule if not i.is_settled), 2)

    def next_due(self) -> Optional[Installment]:
        """First unsettled installment in schedule order"""
        for installment in self.schedule:
            if not installment.is_settled:
                return installment
        return None

    def get_installment(self, installment_number: int) -> Installment:
        for installment in self.schedule:
            if installment.installment_number == installment_number:
                return installment
        raise NotFoundError(
            f"Installment {installment_number} not found",
            details={"number_of_installments": self.number_of_installments},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalAmount": self.total_amount,
            "downPayment": self.down_payment,
            "numberOfInstallments": self.number_of_installments,
            "startDate": self.start_date.isoformat(),
            "interestRate": self.interest_rate,
            "processingFee": self.processing_fee,
            "gracePeriodDays": self.grace_period_days,
            "schedule": [i.to_dict() for i in self.schedule],
            "status": self.status,
            "missedPayments": self.missed_payments,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmiSchedule":
        return cls(
            total_amount=float(data["totalAmount"]),
            down_payment=float(data.get("downPayment", 0)),
            number_of_installments=int(data["numberOfInstallments"]),
            start_date=parse_datetime(data["startDate"]),
            interest_rate=float(data.get("interestRate", 0)),
            processing_fee=float(data.get("processingFee", 0)),
            grace_period_days=int(data.get("gracePeriodDays", DEFAULT_GRACE_PERIOD_DAYS)),
            schedule=[Installment.from_dict(i) for i in data.get("schedule", [])],
            status=data.get("status", "active"),
            missed_payments=int(data.get("missedPayments", 0)),
        )


def _is_integer(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _too_large(interest_rate: float, number_of_installments: int) -> InvalidInputError:
    return InvalidInputError(
        "interestRate is too large to amortize",
        details={"interestRate": interest_rate, "numberOfInstallments": number_of_installments},
    )


def calculate_installment_amount(principal: float, number_of_installments: int, interest_rate: float) -> float:
    """
    Unrounded per-installment amount.

    Formula (r = annual rate / 100 / 12):
        r == 0: principal / n
        r > 0:  principal * r * (1+r)^n / ((1+r)^n - 1)
    """
    monthly_rate = interest_rate / 100 / 12

    if monthly_rate == 0:
        return principal / number_of_installments

    try:
        growth = (1 + monthly_rate) ** number_of_installments
    except OverflowError as e:
        raise _too_large(interest_rate, number_of_installments) from e
    if growth == 1:
        # Rate too small to register in a float
        return principal / number_of_installments

    amount = principal * monthly_rate * growth / (growth - 1)
    if not math.isfinite(amount):
        raise _too_large(interest_rate, number_of_installments)
    return amount


def compute_schedule(
    total_amount: float,
    down_payment: float,
    number_of_installments: int,
    start_date: datetime,
    interest_rate: float = 0.0,
    processing_fee: float = 0.0,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS,
) -> EmiSchedule:
    """
    Compute an EMI schedule.

    Each installment is rounded to 2 decimals on its own, half cents up; the rounding
    remainder is not redistributed, so the schedule total may drift from
    the principal by up to one cent per installment.

    Args:
        total_amount: Course fee being financed
        down_payment: Amount paid upfront
        number_of_installments: 1..MAX_INSTALLMENTS
        start_date: Schedule anchor; installment i is due start + i months
        interest_rate: Annual interest rate in percent
        processing_fee: Recorded on the schedule, not amortized
        grace_period_days: Days after a due date before it counts as missed

    Returns:
        EmiSchedule with n pending installments

    Raises:
        InvalidInputError: On non-numeric or negative amounts, n outside
            1..MAX_INSTALLMENTS or a down payment larger than the total
    """
    if not _is_integer(number_of_installments):
        raise InvalidInputError("numberOfInstallments must be an integer")
    if number_of_installments < 1:
        raise InvalidInputError(
            "numberOfInstallments must be at least 1",
            details={"numberOfInstallments": number_of_installments},
        )
    if number_of_installments > MAX_INSTALLMENTS:
        raise InvalidInputError(
            f"numberOfInstallments cannot exceed {MAX_INSTALLMENTS}",
            details={"numberOfInstallments": number_of_installments},
        )
    if not _is_integer(grace_period_days):
        raise InvalidInputError("gracePeriodDays must be an integer")
    for name, value in (
        ("totalAmount", total_amount),
        ("downPayment", down_payment),
        ("interestRate", interest_rate),
        ("processingFee", processing_fee),
    ):
        if not _is_number(value):
            raise InvalidInputError(f"{name} must be a finite number", details={name: repr(value)})
    if start_date is not None and not isinstance(start_date, datetime):
        raise InvalidInputError("startDate must be a datetime")

    if total_amount < 0 or down_payment < 0:
        raise InvalidInputError("Amounts cannot be negative")
    if interest_rate < 0:
        raise InvalidInputError("interestRate cannot be negative")
    if processing_fee < 0:
        raise InvalidInputError("processingFee cannot be negative")
    if grace_period_days < 0:
        raise InvalidInputError("gracePeriodDays cannot be negative")
    if start_date is None:
        raise InvalidInputError("startDate is required")

    principal = total_amount - down_payment
    if principal < 0:
        raise InvalidInputError(
            "Down payment exceeds total amount",
            details={"totalAmount": total_amount, "downPayment": down_payment},
        )

    start_date = ensure_utc(start_date)
    amount = round_half_up(calculate_installment_amount(principal, number_of_installments, interest_rate), 2)

    schedule = [
        Installment(
            installment_number=i + 1,
            amount=amount,
            due_date=add_months(start_date, i + 1),
        )
        for i in range(number_of_installments)
    ]

    logger.debug(
        f"EMI schedule: principal={principal:.2f}, n={number_of_installments}, "
        f"rate={interest_rate}%, installment={amount:.2f}"
    )

    return EmiSchedule(
        total_amount=total_amount,
        down_payment=down_payment,
        number_of_installments=number_of_installments,
        start_date=start_date,
        interest_rate=interest_rate,
        processing_fee=processing_fee,
        grace_period_days=grace_period_days,
        schedule=schedule,
    )


def _refresh_aggregate(schedule: EmiSchedule) -> None:
    schedule.missed_payments = sum(1 for i in schedule.schedule if i.status == "overdue")

    if schedule.schedule and all(i.is_settled for i in schedule.schedule):
        schedule.status = "completed"
    elif schedule.missed_payments >= DEFAULT_MISSED_PAYMENT_LIMIT:
        schedule.status = "defaulted"
    else:
        schedule.status = "active"


def assess_schedule(schedule: EmiSchedule, now: Optional[datetime] = None) -> EmiSchedule:
    """
    Mark missed installments and refresh the aggregate status (in place).

    A pending installment becomes overdue once `now` is past its due date
    plus the grace period. Evaluated at read time; calling it again with
    the same `now` changes nothing.
    """
    now = ensure_utc(now) if now else utcnow()
    grace = timedelta(days=schedule.grace_period_days)

    for installment in schedule.schedule:
        if installment.status == "pending" and now > ensure_utc(installment.due_date) + grace:
            installment.status = "overdue"

    _refresh_aggregate(schedule)
    return schedule


def record_installment_payment(
    schedule: EmiSchedule,
    installment_number: int,
    paid_at: Optional[datetime] = None,
) -> EmiSchedule:
    """
    Mark one installment paid (in place).

    Overdue installments can still be paid; the missed-payment count drops
    accordingly.

    Raises:
        NotFoundError: Unknown installment number
        InvalidInputError: Installment already paid or waived
    """
    installment = schedule.get_installment(installment_number)
    if installment.is_settled:
        raise InvalidInputError(
            f"Installment {installment_number} is already {installment.status}",
            details={"status": installment.status},
        )

    installment.status = "paid"
    installment.paid_at = ensure_utc(paid_at) if paid_at else utcnow()
    _refresh_aggregate(schedule)
    return schedule


def waive_installment(schedule: EmiSchedule, installment_number: int) -> EmiSchedule:
    """Waive one unsettled installment (in place)"""
    installment = schedule.get_installment(installment_number)
    if installment.is_settled:
        raise InvalidInputError(
            f"Installment {installment_number} is already {installment.status}",
            details={"status": installment.status},
        )

    installment.status = "waived"
    _refresh_aggregate(schedule)
    return schedule

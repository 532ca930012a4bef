"""Appointment lifecycle state machine and its coupling to payment state."""

from datetime import date
from enum import Enum


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    TENTATIVE = "tentative"
    TO_PAY = "To Pay"
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment status enumeration, owned by the payment collaborator."""

    UNPAID = "unpaid"
    HALF_PAID = "half-paid"
    PAID = "paid"


TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

# Statuses that surface in the staff "Requests" inbox
REQUEST_STATUSES = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.TENTATIVE, AppointmentStatus.TO_PAY}
)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.SCHEDULED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.TENTATIVE,
            AppointmentStatus.TO_PAY,
        }
    ),
    AppointmentStatus.TENTATIVE: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.TO_PAY: frozenset(
        {AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.SCHEDULED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Raised when a status change is not permitted."""

    def __init__(self, current: AppointmentStatus, target: AppointmentStatus):
        self.current = AppointmentStatus(current)
        self.target = AppointmentStatus(target)
        super().__init__(
            f"Cannot change appointment status from '{self.current.value}' "
            f"to '{self.target.value}'"
        )


def can_transition(current: AppointmentStatus | str, target: AppointmentStatus | str) -> bool:
    """Check whether ``current -> target`` is a legal status change."""
    current = AppointmentStatus(current)
    target = AppointmentStatus(target)

    if current in TERMINAL_STATUSES:
        return False
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]


def transition(
    current: AppointmentStatus | str,
    target: AppointmentStatus | str,
) -> AppointmentStatus:
    """
    Apply a status change.

    A non-terminal status moving to itself is a no-op. Completed and cancelled
    appointments accept no further transitions, including to themselves.

    Args:
        current: Current status
        target: Requested status

    Returns:
        The new status

    Raises:
        InvalidTransitionError: If the transition is not permitted
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    return AppointmentStatus(target)


def approval_target(current: AppointmentStatus | str) -> AppointmentStatus:
    """Status an inbox request moves to when staff approve it."""
    current = AppointmentStatus(current)
    if current == AppointmentStatus.TENTATIVE:
        return AppointmentStatus.CONFIRMED
    return AppointmentStatus.SCHEDULED


def status_after_payment(
    current: AppointmentStatus | str,
    payment_status: PaymentStatus | str,
    pay_at_clinic: bool = False,
) -> AppointmentStatus:
    """
    Status a pending request moves to once the patient has chosen how to pay.

    Partial online payment reserves the slot as ``tentative``; choosing to pay
    at the clinic moves it to ``To Pay``. A fully paid request stays pending
    until staff review it. Non-pending appointments are left unchanged.
    """
    current = AppointmentStatus(current)
    payment_status = PaymentStatus(payment_status)

    if current != AppointmentStatus.PENDING:
        return current
    if pay_at_clinic:
        return AppointmentStatus.TO_PAY
    if payment_status == PaymentStatus.HALF_PAID:
        return AppointmentStatus.TENTATIVE
    return current


def payment_label(status: AppointmentStatus | str, payment_status: PaymentStatus | str) -> str:
    """Payment affordance label shown next to an inbox request."""
    status = AppointmentStatus(status)
    payment_status = PaymentStatus(payment_status)

    if payment_status == PaymentStatus.HALF_PAID:
        return "Partial"
    if status == AppointmentStatus.TO_PAY:
        return "Clinic"
    if payment_status == PaymentStatus.PAID:
        return "Paid"
    return "Unpaid"


def effective_status(appointment, today: date) -> AppointmentStatus:
    """
    Status to display for an appointment as of ``today``.

    Scheduled or confirmed appointments whose date has passed read as
    completed, without the transition being persisted.
    """
    status = AppointmentStatus(appointment.status)
    if (
        status in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)
        and appointment.date < today
    ):
        return AppointmentStatus.COMPLETED
    return status

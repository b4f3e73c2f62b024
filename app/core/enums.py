"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    CUSTOMER = "customer"
    ADMIN = "admin"


class ReservationStatusEnum(StrEnum):
    """Reservation lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ConfirmedSubstateEnum(StrEnum):
    """Sub-state carried by a confirmed reservation."""

    NORMAL = "normal"
    CANCEL_REQUESTED = "cancel_requested"


class ChangeRequestStatusEnum(StrEnum):
    """Change request status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationTypeEnum(StrEnum):
    """Kind of customer notification."""

    APPROVAL = "approval"
    CONFIRMATION = "confirmation"
    REJECTION = "rejection"
    CANCELLATION = "cancellation"
    CHANGE_APPROVED = "change_approved"
    CHANGE_REJECTED = "change_rejected"


class NotificationChannelEnum(StrEnum):
    """Delivery channel."""

    KAKAO = "kakao"
    SMS = "sms"


class NotificationStatusEnum(StrEnum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for change publication."""

    PENDING = "pending"
    PROCESSED = "processed"


def enum_values(enum_cls: type[StrEnum]) -> list[str]:
    """Persist member values, not member names, in string enum columns."""
    return [member.value for member in enum_cls]

"""Plain-text message templates per notification type."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time

from app.core.enums import NotificationTypeEnum
from app.shared.utils import format_date, format_price, format_time

TEMPLATE_CODES: dict[NotificationTypeEnum, str] = {
    NotificationTypeEnum.APPROVAL: "TP_APPROVAL",
    NotificationTypeEnum.CONFIRMATION: "TP_CONFIRMATION",
    NotificationTypeEnum.REJECTION: "TP_REJECTION",
    NotificationTypeEnum.CANCELLATION: "TP_CANCELLATION",
    NotificationTypeEnum.CHANGE_APPROVED: "TP_CHANGE_APPROVED",
    NotificationTypeEnum.CHANGE_REJECTED: "TP_CHANGE_REJECTED",
}


@dataclass(frozen=True)
class TemplateContext:
    store_name: str
    customer_name: str
    class_name: str
    date: date
    time: time
    price: int
    reject_reason: str | None = None
    bank_info: str | None = None
    deposit_deadline_hours: int | None = None
    change_link: str | None = None
    requested_date: date | None = None
    requested_time: time | None = None


def template_code_for(notification_type: NotificationTypeEnum) -> str:
    return TEMPLATE_CODES.get(notification_type, str(notification_type))


def build_change_link(public_base_url: str, change_token: str | None) -> str | None:
    if not change_token:
        return None
    return f"{public_base_url.rstrip('/')}/booking/change/{change_token}"


def _join(lines: list[str | None]) -> str:
    return "\n".join(line for line in lines if line is not None)


def render_message(notification_type: NotificationTypeEnum, ctx: TemplateContext) -> str:
    """Render the customer-facing text for one notification type."""
    when = f"{format_date(ctx.date)} {format_time(ctx.time)}"
    header = f"[{ctx.store_name}]"

    if notification_type == NotificationTypeEnum.APPROVAL:
        return _join(
            [
                f"{header} Reservation received - payment details",
                "",
                f"Hello {ctx.customer_name}, we have received your reservation.",
                "",
                f"- Class: {ctx.class_name}",
                f"- Date: {when}",
                f"- Price: {format_price(ctx.price)}",
                "",
                f"> Bank account: {ctx.bank_info}" if ctx.bank_info
                else "> We will contact you separately with the bank account.",
                f"> Please transfer within {ctx.deposit_deadline_hours} hours."
                if ctx.deposit_deadline_hours
                else "> Please transfer as soon as possible.",
                "",
                "Your booking is confirmed once the payment is checked.",
            ],
        )

    if notification_type == NotificationTypeEnum.CONFIRMATION:
        return _join(
            [
                f"{header} Reservation confirmed",
                "",
                f"Hello {ctx.customer_name}, your payment was received and your reservation is confirmed.",
                "",
                f"- Class: {ctx.class_name}",
                f"- Date: {when}",
                f"- Price: {format_price(ctx.price)}",
                "",
                "Need a different date? Use the link below.",
                f"> {ctx.change_link}" if ctx.change_link else "",
                "",
                f"Thank you. See you at {ctx.store_name}!",
            ],
        )

    if notification_type == NotificationTypeEnum.REJECTION:
        return _join(
            [
                f"{header} Reservation declined",
                "",
                f"Hello {ctx.customer_name}, we are sorry.",
                "Your reservation request was declined.",
                "",
                f"- Class: {ctx.class_name}",
                f"- Date: {when}",
                f"- Reason: {ctx.reject_reason}" if ctx.reject_reason else "",
                "",
                "We would be glad to welcome you on another date.",
            ],
        )

    if notification_type == NotificationTypeEnum.CANCELLATION:
        return _join(
            [
                f"{header} Reservation cancelled",
                "",
                f"Hello {ctx.customer_name}, your reservation has been cancelled.",
                "",
                f"- Class: {ctx.class_name}",
                f"- Date: {when}",
                "",
                "Please contact us through our messenger channel with any questions.",
            ],
        )

    if notification_type == NotificationTypeEnum.CHANGE_APPROVED:
        after = (
            f"- After: {format_date(ctx.requested_date)} {format_time(ctx.requested_time)}"
            if ctx.requested_date is not None and ctx.requested_time is not None
            else ""
        )
        return _join(
            [
                f"{header} Schedule change approved",
                "",
                f"Hello {ctx.customer_name}, your schedule change was approved.",
                "",
                f"- Class: {ctx.class_name}",
                f"- Before: {when}",
                after,
                "",
                "See you on the new date!",
            ],
        )

    if notification_type == NotificationTypeEnum.CHANGE_REJECTED:
        return _join(
            [
                f"{header} Schedule change declined",
                "",
                f"Hello {ctx.customer_name}, we are sorry.",
                "Your schedule change request was not approved.",
                "",
                f"- Class: {ctx.class_name}",
                f"- Current date: {when}",
                f"- Reason: {ctx.reject_reason}" if ctx.reject_reason else "",
                "",
                "Your reservation stays on its current date.",
            ],
        )

    return ""

"""
Customer e-mail templates per trade-in status.

Placeholders use str.format_map syntax; unknown keys render as "".
`reviewing` and `accepted` have no template: they are internal steps and a
transition into them reports NotificationTemplateMissingError (logged only).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from tradein_engine.features.notifications.errors import NotificationTemplateMissingError


@dataclass(frozen=True)
class StatusTemplate:
    subject: str
    body: str


@dataclass(frozen=True)
class RenderedMessage:
    status: str
    subject: str
    body: str


_GREETING = "Dear {first_name} {last_name},\n\n"
_SIGNATURE = "\n\nKind regards\n{company_name}\n"


STATUS_TEMPLATES: Dict[str, StatusTemplate] = {
    "pending": StatusTemplate(
        subject="Your trade-in request has been received",
        body=(
            _GREETING
            + "thank you for your trade-in request (ID: {trade_in_id}).\n\n"
            "Device: {device_type} / {brand} / {model}\n"
            "Estimated value: {estimated_price} {currency}\n\n"
            "We will review your request and keep you updated."
            + _SIGNATURE
        ),
    ),
    "offerMade": StatusTemplate(
        subject="We have an offer for your device",
        body=(
            _GREETING
            + "we have reviewed your trade-in request (ID: {trade_in_id}).\n\n"
            "Please accept or decline the offer in your account: {dashboard_url}"
            + _SIGNATURE
        ),
    ),
    "deviceReceived": StatusTemplate(
        subject="Your device has arrived",
        body=(
            _GREETING
            + "we have received your device (ID: {trade_in_id}) and will now inspect it.\n"
            "Tracking number: {tracking_number}"
            + _SIGNATURE
        ),
    ),
    "inspected": StatusTemplate(
        subject="Inspection of your device is complete",
        body=(
            _GREETING
            + "the inspection of your device (ID: {trade_in_id}) is complete.\n\n"
            "Condition: {condition}\n"
            "Final price: {final_price} {currency}\n"
            "Notes: {notes}\n\n"
            "Please confirm the final price in your account: {dashboard_url}"
            + _SIGNATURE
        ),
    ),
    "completed": StatusTemplate(
        subject="Trade-in completed, payment initiated",
        body=(
            _GREETING
            + "your trade-in (ID: {trade_in_id}) is complete.\n\n"
            "A payment of {final_price} {currency} has been initiated."
            + _SIGNATURE
        ),
    ),
    "rejected": StatusTemplate(
        subject="We cannot accept your trade-in request",
        body=(
            _GREETING
            + "unfortunately we cannot accept your trade-in request (ID: {trade_in_id}).\n\n"
            "Reason: {rejection_reason}"
            + _SIGNATURE
        ),
    ),
    "cancelled": StatusTemplate(
        subject="Your trade-in request has been cancelled",
        body=(
            _GREETING
            + "your trade-in request (ID: {trade_in_id}) has been cancelled."
            + _SIGNATURE
        ),
    ),
}


class _TemplateData(dict):
    def __missing__(self, key: str) -> str:
        return ""


def _fmt(v: Any) -> Any:
    if v is None:
        return ""
    if isinstance(v, float) and v.is_integer():
        return int(v)
    return v


def render_status_message(
    status: str,
    data: Mapping[str, Any],
    templates: Mapping[str, StatusTemplate] = STATUS_TEMPLATES,
) -> RenderedMessage:
    template = templates.get(status)
    if template is None:
        raise NotificationTemplateMissingError(status)

    values = _TemplateData({k: _fmt(v) for k, v in data.items()})
    return RenderedMessage(
        status=status,
        subject=template.subject.format_map(values),
        body=template.body.format_map(values),
    )

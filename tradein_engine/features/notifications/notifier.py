"""
Outbound customer notifications.

Notifier.notify(recipient_email, request_id, status, template_data) renders the
status template and hands it to the mail webhook (MAIL_WEBHOOK_URL). Without a
webhook the message is only logged, which is the normal dev setup.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from tradein_engine.features.notifications.errors import NotificationDeliveryError
from tradein_engine.features.notifications.templates import (
    STATUS_TEMPLATES,
    RenderedMessage,
    StatusTemplate,
    render_status_message,
)

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(
        self,
        *,
        webhook_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        templates: Mapping[str, StatusTemplate] = STATUS_TEMPLATES,
    ) -> None:
        self._webhook_url = webhook_url
        self._timeout = float(timeout_seconds)
        self._client = client
        self._templates = templates

    def render(self, status: str, template_data: Mapping[str, Any]) -> RenderedMessage:
        return render_status_message(status, template_data, self._templates)

    async def notify(
        self,
        recipient_email: str,
        request_id: str,
        status: str,
        template_data: Mapping[str, Any],
    ) -> None:
        # Raises NotificationTemplateMissingError before anything is sent.
        message = self.render(status, {**template_data, "trade_in_id": request_id})

        if not self._webhook_url:
            logger.info(
                "notify:log_only to=%s trade_in_id=%s status=%s subject=%r",
                recipient_email,
                request_id,
                status,
                message.subject,
            )
            return

        payload = {
            "to": recipient_email,
            "subject": message.subject,
            "body": message.body,
            "trade_in_id": request_id,
            "status": status,
        }

        try:
            if self._client is not None:
                resp = await self._client.post(self._webhook_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._webhook_url, json=payload)
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NotificationDeliveryError(
                f"Mail webhook failed for trade_in_id={request_id} status={status}: {exc}"
            ) from exc

        logger.info("notify:sent to=%s trade_in_id=%s status=%s", recipient_email, request_id, status)

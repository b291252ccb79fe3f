"""
Turns committed StatusChanged events into customer notifications.

Runs after the status write. Every failure here (unknown recipient, missing
template, webhook down) is logged and reported as False; the caller's
response is unaffected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from tradein_engine.core.config import config
from tradein_engine.db.mongo import USERS_COLLECTION, get_db
from tradein_engine.features.lifecycle.events import StatusChanged
from tradein_engine.features.notifications.errors import NotificationError, NotificationTemplateMissingError
from tradein_engine.features.notifications.notifier import Notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    email: str
    first_name: str = ""
    last_name: str = ""


class RecipientDirectory:
    """Owner contact data from the users collection (identity itself is managed elsewhere)."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[USERS_COLLECTION]

    async def lookup(self, owner_id: str) -> Optional[Recipient]:
        doc = await self._col.find_one(
            {"id": owner_id},
            projection={"_id": 0, "email": 1, "first_name": 1, "last_name": 1, "name": 1},
        )
        if not doc or not doc.get("email"):
            return None

        first = doc.get("first_name")
        last = doc.get("last_name")
        if not first and isinstance(doc.get("name"), str):
            first, _, last = doc["name"].partition(" ")
        return Recipient(email=str(doc["email"]), first_name=first or "", last_name=last or "")


def build_template_data(event: StatusChanged, request: Mapping[str, Any], recipient: Recipient) -> Dict[str, Any]:
    inspection = request.get("inspection_results") or {}
    return {
        "first_name": recipient.first_name,
        "last_name": recipient.last_name,
        "device_type": request.get("device_type"),
        "brand": request.get("brand"),
        "model": request.get("model"),
        "estimated_price": request.get("estimated_price"),
        "final_price": event.final_price if event.final_price is not None else request.get("final_price"),
        "condition": inspection.get("condition") or request.get("condition"),
        "notes": inspection.get("notes") or event.note,
        "tracking_number": event.tracking_number or request.get("tracking_number"),
        "rejection_reason": event.note if event.status == "rejected" else None,
        "currency": config.currency,
        "company_name": config.company_name,
        "company_address": config.company_address,
        "dashboard_url": config.dashboard_url,
        "current_year": datetime.now(timezone.utc).year,
    }


class NotificationDispatcher:
    def __init__(self, notifier: Notifier, recipients: RecipientDirectory):
        self._notifier = notifier
        self._recipients = recipients

    async def dispatch(self, event: StatusChanged, request: Mapping[str, Any]) -> bool:
        try:
            recipient = await self._recipients.lookup(event.owner_id)
        except PyMongoError:
            logger.exception("notify:recipient_lookup_failed trade_in_id=%s owner_id=%s", event.trade_in_id, event.owner_id)
            return False

        if recipient is None:
            logger.warning(
                "notify:skipped_no_recipient trade_in_id=%s owner_id=%s status=%s",
                event.trade_in_id,
                event.owner_id,
                event.status,
            )
            return False

        try:
            await self._notifier.notify(
                recipient.email,
                event.trade_in_id,
                event.status,
                build_template_data(event, request, recipient),
            )
        except NotificationTemplateMissingError as exc:
            logger.warning("notify:no_template trade_in_id=%s status=%s", event.trade_in_id, exc.status)
            return False
        except NotificationError:
            logger.exception("notify:failed trade_in_id=%s status=%s", event.trade_in_id, event.status)
            return False

        return True


async def get_notification_dispatcher(db: AsyncIOMotorDatabase = Depends(get_db)) -> NotificationDispatcher:
    notifier = Notifier(webhook_url=config.mail_webhook_url, timeout_seconds=config.mail_timeout_seconds)
    return NotificationDispatcher(notifier, RecipientDirectory(db))

from __future__ import annotations


class NotificationError(Exception):
    """Base for notification failures. Never rolls back a committed status change."""


class NotificationTemplateMissingError(NotificationError):
    """No template configured for a status. Fix by configuration, not by retrying."""

    def __init__(self, status: str):
        super().__init__(f"No notification template for status {status!r}")
        self.status = status


class NotificationDeliveryError(NotificationError):
    """The transport (mail webhook) rejected or failed to accept the message."""

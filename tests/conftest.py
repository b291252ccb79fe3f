from __future__ import annotations

from typing import Any, List, Mapping, Tuple

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from tradein_engine.db.mongo import get_db
from tradein_engine.features.lifecycle.events import StatusChanged
from tradein_engine.features.notifications.dispatcher import get_notification_dispatcher
from tradein_engine.main import app


class RecordingDispatcher:
    """Stands in for NotificationDispatcher; keeps every committed event."""

    def __init__(self) -> None:
        self.calls: List[Tuple[StatusChanged, Mapping[str, Any]]] = []

    async def dispatch(self, event: StatusChanged, request: Mapping[str, Any]) -> bool:
        self.calls.append((event, dict(request)))
        return True

    @property
    def statuses(self) -> List[str]:
        return [ev.status for ev, _ in self.calls]


@pytest.fixture
def db():
    return AsyncMongoMockClient()["tradein_test"]


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def client(db, dispatcher):
    # No `with`: the Mongo lifespan is not started, get_db is overridden instead.
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def device_payload():
    return {
        "device_type": "smartphone",
        "brand": "Apple",
        "model": "iPhone 13",
        "condition": "good",
        "specifications": {"storage": "128GB", "color": "blue"},
        "description": "light scratches on the back",
    }

"""
Service-level tests against an in-memory Mongo (mongomock-motor).
"""

from __future__ import annotations

import pytest

from tradein_engine.core.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from tradein_engine.db.mongo import TRADE_IN_COLLECTION
from tradein_engine.features.lifecycle.machine import plan_status_change
from tradein_engine.features.pricing.schemas import InspectionReport
from tradein_engine.features.tradein import service
from tradein_engine.features.tradein.query import TradeInFilters
from tradein_engine.features.tradein.repo import TradeInRepo
from tradein_engine.features.tradein.schemas import ImagesUpdate, StatusUpdate, TradeInCreate

OPERATOR = "ops@example.com"


async def _create(db, dispatcher, payload, owner_id="user-1", **overrides):
    data = TradeInCreate(**{**payload, **overrides})
    return await service.create_trade_in(db, owner_id, data, dispatcher=dispatcher)


async def _status(db, dispatcher, trade_in_id, status, **kw):
    return await service.update_status(
        db,
        trade_in_id,
        StatusUpdate(status=status, **kw),
        operator=OPERATOR,
        dispatcher=dispatcher,
        strict=False,
    )


# --- Creation ---


@pytest.mark.asyncio
async def test_create_computes_estimate_and_starts_pending(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)

    assert created.estimated_price == 352
    assert created.status == "pending"
    assert created.final_price is None
    assert created.version == 1
    assert [h.status for h in created.history] == ["pending"]
    assert created.history[0].updated_by == "user-1"
    assert created.specifications["color"] == "blue"

    stored = await db[TRADE_IN_COLLECTION].find_one({"id": created.id})
    assert stored["owner_id"] == "user-1"
    assert stored["estimated_price"] == 352

    assert dispatcher.statuses == ["pending"]


@pytest.mark.asyncio
async def test_client_price_fields_are_ignored(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload, estimated_price=9999, status="completed")
    assert created.estimated_price == 352
    assert created.status == "pending"


@pytest.mark.asyncio
async def test_owner_scoping(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)

    got = await service.get_owned_trade_in(db, "user-1", created.id)
    assert got.id == created.id

    with pytest.raises(NotFoundError):
        await service.get_owned_trade_in(db, "someone-else", created.id)
    with pytest.raises(NotFoundError):
        await service.get_owned_trade_in(db, "user-1", "missing")


# --- Status changes ---


@pytest.mark.asyncio
async def test_status_change_appends_history_and_notifies(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)

    updated = await _status(db, dispatcher, created.id, "offerMade", note="offer sent")

    assert updated.status == "offerMade"
    assert updated.version == 2
    assert [h.status for h in updated.history] == ["pending", "offerMade"]
    assert updated.history[-1].note == "offer sent"
    assert updated.history[-1].updated_by == OPERATOR

    event, doc = dispatcher.calls[-1]
    assert event.status == "offerMade"
    assert event.previous_status == "pending"
    assert doc["status"] == "offerMade"


@pytest.mark.asyncio
async def test_completed_without_price_changes_nothing(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)
    await _status(db, dispatcher, created.id, "accepted")

    with pytest.raises(ValidationError) as exc:
        await _status(db, dispatcher, created.id, "completed")
    assert exc.value.code == "final_price_required"

    current = await service.get_trade_in(db, created.id)
    assert current.status == "accepted"
    assert len(current.history) == 2
    assert dispatcher.statuses == ["pending", "accepted"]


@pytest.mark.asyncio
async def test_terminal_request_is_locked(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)
    await _status(db, dispatcher, created.id, "rejected", note="blacklisted IMEI")

    with pytest.raises(InvalidTransitionError):
        await _status(db, dispatcher, created.id, "reviewing")
    with pytest.raises(InvalidTransitionError):
        await service.cancel_by_owner(db, "user-1", created.id, dispatcher=dispatcher, strict=False)

    history = await service.get_history(db, created.id)
    assert [h.status for h in history] == ["pending", "rejected"]


@pytest.mark.asyncio
async def test_strict_mode_rejects_skipped_step(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)
    with pytest.raises(InvalidTransitionError):
        await service.update_status(
            db,
            created.id,
            StatusUpdate(status="completed", final_price=100),
            operator=OPERATOR,
            dispatcher=dispatcher,
            strict=True,
        )


@pytest.mark.asyncio
async def test_owner_cancel(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)

    with pytest.raises(NotFoundError):
        await service.cancel_by_owner(db, "someone-else", created.id, dispatcher=dispatcher)

    cancelled = await service.cancel_by_owner(db, "user-1", created.id, dispatcher=dispatcher, strict=False)
    assert cancelled.status == "cancelled"
    assert cancelled.history[-1].note == service.OWNER_CANCEL_NOTE
    assert cancelled.history[-1].updated_by == "user-1"


# --- Concurrency ---


@pytest.mark.asyncio
async def test_expected_version_mismatch_is_a_conflict(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)
    await _status(db, dispatcher, created.id, "reviewing")

    with pytest.raises(ConflictError) as exc:
        await _status(db, dispatcher, created.id, "offerMade", expected_version=created.version)
    assert exc.value.code == "trade_in_version_conflict"

    ok = await _status(db, dispatcher, created.id, "offerMade", expected_version=2)
    assert ok.version == 3


@pytest.mark.asyncio
async def test_apply_plan_returns_the_updated_document(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)
    repo = TradeInRepo(db)

    doc = await repo.apply_plan(plan_status_change(await repo.get(created.id), "reviewing", updated_by="a"))

    assert doc is not None
    assert "_id" not in doc
    assert doc["status"] == "reviewing"
    assert doc["version"] == 2
    assert [h["status"] for h in doc["history"]] == ["pending", "reviewing"]

    # The next plan, built from the returned document, applies cleanly too.
    doc = await repo.apply_plan(plan_status_change(doc, "offerMade", updated_by="a"))
    assert doc["version"] == 3


@pytest.mark.asyncio
async def test_stale_plan_loses_compare_and_swap(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)
    repo = TradeInRepo(db)
    snapshot = await repo.get(created.id)

    first = plan_status_change(snapshot, "offerMade", updated_by="a")
    second = plan_status_change(snapshot, "rejected", updated_by="b")

    assert await repo.apply_plan(first) is not None
    assert await repo.apply_plan(second) is None

    doc = await repo.get(created.id)
    assert doc["status"] == "offerMade"
    assert [h["status"] for h in doc["history"]] == ["pending", "offerMade"]


@pytest.mark.asyncio
async def test_unknown_id_is_not_found(db, dispatcher):
    with pytest.raises(NotFoundError):
        await _status(db, dispatcher, "missing", "reviewing")
    with pytest.raises(NotFoundError):
        await service.get_history(db, "missing")
    with pytest.raises(NotFoundError):
        await service.get_images(db, "missing")


# --- Inspection ---


@pytest.mark.asyncio
async def test_inspection_sets_final_price(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload)
    # Pin the estimate so the expected final price is easy to follow.
    await db[TRADE_IN_COLLECTION].update_one({"id": created.id}, {"$set": {"estimated_price": 300.0}})
    await _status(db, dispatcher, created.id, "accepted")
    await _status(db, dispatcher, created.id, "deviceReceived", tracking_number="TRK-1")

    report = InspectionReport(
        condition="good",
        functionality_test={"screen": True, "battery": False},
        cosmetic={"back": "good"},
        accessories=["charger"],
        notes="battery at 71%",
    )
    inspected = await service.record_inspection(
        db, created.id, report, operator=OPERATOR, dispatcher=dispatcher, strict=True
    )

    assert inspected.status == "inspected"
    assert inspected.final_price == 153
    assert inspected.inspection_results["functionality_test"] == {"screen": True, "battery": False}
    assert inspected.tracking_number == "TRK-1"
    assert dispatcher.calls[-1][0].final_price == 153

    completed = await _status(db, dispatcher, created.id, "completed")
    assert completed.status == "completed"
    assert completed.final_price == 153


# --- Images ---


@pytest.mark.asyncio
async def test_images_append_then_replace(db, dispatcher, device_payload):
    created = await _create(db, dispatcher, device_payload, images=["a.jpg"])

    appended = await service.update_images(db, "user-1", created.id, ImagesUpdate(images=["b.jpg", "c.jpg"]))
    assert appended.images == ["a.jpg", "b.jpg", "c.jpg"]

    replaced = await service.update_images(db, "user-1", created.id, ImagesUpdate(images=["d.jpg"], replace=True))
    assert replaced.images == ["d.jpg"]
    assert await service.get_images(db, created.id) == ["d.jpg"]

    with pytest.raises(NotFoundError):
        await service.update_images(db, "someone-else", created.id, ImagesUpdate(images=["x.jpg"]))


# --- Listing ---


@pytest.mark.asyncio
async def test_empty_listing_has_no_stats(db):
    result = await service.list_owner_trade_ins(db, "nobody", TradeInFilters())
    assert result.items == []
    assert result.stats is None
    assert result.pagination.total == 0
    assert result.pagination.pages == 0


@pytest.mark.asyncio
async def test_listing_filters_paginates_and_aggregates(db, dispatcher, device_payload):
    first = await _create(db, dispatcher, device_payload)
    await _create(db, dispatcher, device_payload, device_type="tablet", brand="Samsung", model="Galaxy Tab S8")
    await _create(db, dispatcher, device_payload, condition="new", specifications={"storage": "256GB"})
    await _create(db, dispatcher, device_payload, owner_id="user-2")
    await _status(db, dispatcher, first.id, "completed", final_price=300)

    result = await service.list_owner_trade_ins(db, "user-1", TradeInFilters(), limit=2)
    assert result.pagination.total == 3
    assert result.pagination.pages == 2
    assert result.pagination.limit == 2
    assert len(result.items) == 2
    assert all(item.owner_id == "user-1" for item in result.items)

    stats = result.stats
    assert stats.total_trade_ins == 3
    # iPhone good 128GB, Samsung tablet good 128GB, iPhone new 256GB
    assert stats.total_estimated_value == 352 + 176 + 480
    assert stats.total_final_value == 300
    assert stats.device_types == ["smartphone", "tablet"]
    assert stats.brands == ["Apple", "Samsung"]
    assert stats.status_counts == {"completed": 1, "pending": 2}

    apple = await service.list_owner_trade_ins(db, "user-1", TradeInFilters(search="iphone"))
    assert apple.pagination.total == 2

    by_price = await service.list_owner_trade_ins(
        db, "user-1", TradeInFilters(), sort_by="estimatedPrice", sort_order="asc"
    )
    assert [i.estimated_price for i in by_price.items] == [176, 352, 480]


@pytest.mark.asyncio
async def test_admin_listing_spans_owners(db, dispatcher, device_payload):
    await _create(db, dispatcher, device_payload)
    await _create(db, dispatcher, device_payload, owner_id="user-2")

    everyone = await service.list_all_trade_ins(db, TradeInFilters())
    assert everyone.pagination.total == 2

    one = await service.list_all_trade_ins(db, TradeInFilters(status="pending"), owner_id="user-2")
    assert [i.owner_id for i in one.items] == ["user-2"]

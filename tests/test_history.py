"""Tests for delivery history queries."""

from __future__ import annotations

from datetime import timedelta

from conftest import ORG_ID

from hookrelay.delivery import DeliveryHistory
from hookrelay.models import RelayDelivery, utc_now
from hookrelay.signing import build_signed_payload


def _delivery(webhook_id: str, minutes_ago: int, **fields) -> RelayDelivery:
    payload = build_signed_payload("task.created", "ts", ORG_ID, {}, "secret")
    return RelayDelivery(
        webhook_id=webhook_id,
        organization_id=ORG_ID,
        event=payload.event,
        payload=payload,
        created_at=utc_now() - timedelta(minutes=minutes_ago),
        **fields,
    )


class TestListDeliveries:
    """Tests for DeliveryHistory.list_deliveries()."""

    async def test_newest_first_with_limit(self, storage):
        records = [_delivery("whk_1", minutes_ago=m) for m in (30, 10, 20)]
        for record in records:
            await storage.log_delivery(record)
        await storage.log_delivery(_delivery("whk_2", minutes_ago=0))
        history = DeliveryHistory(storage)

        newest = await history.list_deliveries("whk_1", limit=2)

        assert [d.id for d in newest] == [records[1].id, records[2].id]

    async def test_default_limit(self, storage):
        for m in range(55):
            await storage.log_delivery(_delivery("whk_1", minutes_ago=m))

        assert len(await DeliveryHistory(storage).list_deliveries("whk_1")) == 50

    async def test_non_positive_limit(self, storage):
        await storage.log_delivery(_delivery("whk_1", minutes_ago=1))
        assert await DeliveryHistory(storage).list_deliveries("whk_1", limit=0) == []

    async def test_unknown_webhook(self, storage):
        assert await DeliveryHistory(storage).list_deliveries("whk_none") == []

    async def test_read_has_no_side_effects(self, storage):
        record = _delivery("whk_1", minutes_ago=1)
        await storage.log_delivery(record)
        history = DeliveryHistory(storage)

        first = await history.list_deliveries("whk_1")
        second = await history.list_deliveries("whk_1")

        assert first == second


class TestListChain:
    """Tests for DeliveryHistory.list_chain()."""

    async def test_attempt_order(self, storage):
        first = _delivery("whk_1", minutes_ago=5, chain_id="chn_a", attempts=1, status="retrying")
        second = _delivery("whk_1", minutes_ago=3, chain_id="chn_a", attempts=2, status="failed")
        for record in (second, first, _delivery("whk_1", minutes_ago=1)):
            await storage.log_delivery(record)

        chain = await DeliveryHistory(storage).list_chain("chn_a")

        assert [d.id for d in chain] == [first.id, second.id]

"""Tests for RedisShipmentStore against a mocked redis.asyncio client."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
import redis

from cargocore.config import CargoConfig
from cargocore.exceptions import ConcurrentUpdateConflict, ConfigurationError, NotFoundError, StorageError
from cargocore.storage import RedisShipmentStore, ShipmentStore
from cargocore.tracking import Shipment, ShipmentStatus, StatusTransition, TrackingEventCode

SHIPMENT = Shipment(shipment_id="SHP-001", tracking_number="CCT2026001", client_id="client-1")


def _client_with_pipeline(stored: Shipment | None = SHIPMENT):
    pipe = MagicMock()
    pipe.__aenter__.return_value = pipe
    pipe.watch = AsyncMock()
    pipe.get = AsyncMock(return_value=stored.model_dump_json() if stored else None)
    pipe.exists = AsyncMock(return_value=0)
    pipe.execute = AsyncMock(return_value=[True, 1, True, 1])

    client = MagicMock()
    client.pipeline.return_value = pipe
    return client, pipe


def _transition(version: int = 1) -> StatusTransition:
    return StatusTransition(
        shipment_id="SHP-001",
        from_status=ShipmentStatus.PENDING,
        to_status=ShipmentStatus.CONFIRMED,
        version=version,
    )


class TestRedisShipmentStore:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(RedisShipmentStore(MagicMock()), ShipmentStore)

    def test_from_config_requires_url(self) -> None:
        with pytest.raises(ConfigurationError):
            RedisShipmentStore.from_config(CargoConfig())

    @pytest.mark.asyncio
    async def test_get_shipment(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(return_value=SHIPMENT.model_dump_json())
        store = RedisShipmentStore(client, prefix="acme")

        assert await store.get_shipment("SHP-001") == SHIPMENT
        client.get.assert_awaited_once_with("acme:shipment:SHP-001")

    @pytest.mark.asyncio
    async def test_connection_failure_is_storage_error(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(side_effect=redis.ConnectionError("refused"))
        with pytest.raises(StorageError) as exc_info:
            await RedisShipmentStore(client).get_shipment("SHP-001")
        assert exc_info.value.transient is True

    @pytest.mark.asyncio
    async def test_add_shipment_is_one_transaction(self) -> None:
        client, pipe = _client_with_pipeline()
        pipe.execute = AsyncMock(return_value=[True, 1])

        assert await RedisShipmentStore(client).add_shipment(SHIPMENT) == SHIPMENT

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.set.assert_called_once_with("cargocore:shipment:SHP-001", SHIPMENT.model_dump_json(), nx=True)
        pipe.sadd.assert_called_once_with("cargocore:shipments", "SHP-001")
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_add_duplicate(self) -> None:
        client, pipe = _client_with_pipeline()
        pipe.execute = AsyncMock(return_value=[None, 0])
        with pytest.raises(ValueError, match="already exists"):
            await RedisShipmentStore(client).add_shipment(SHIPMENT)

    @pytest.mark.asyncio
    async def test_add_failure_is_storage_error(self) -> None:
        client, pipe = _client_with_pipeline()
        pipe.execute = AsyncMock(side_effect=redis.ConnectionError("reset"))
        with pytest.raises(StorageError):
            await RedisShipmentStore(client).add_shipment(SHIPMENT)

    @pytest.mark.asyncio
    async def test_find_shipments_filters(self) -> None:
        other = SHIPMENT.model_copy(update={"shipment_id": "SHP-002", "client_id": "client-2"})
        client = MagicMock()
        client.smembers = AsyncMock(return_value={"SHP-001", "SHP-002"})
        client.mget = AsyncMock(return_value=[SHIPMENT.model_dump_json(), other.model_dump_json()])

        found = await RedisShipmentStore(client).find_shipments({"client_id": "client-2"})
        assert [s.shipment_id for s in found] == ["SHP-002"]
        client.mget.assert_awaited_once_with(["cargocore:shipment:SHP-001", "cargocore:shipment:SHP-002"])

    @pytest.mark.asyncio
    async def test_record_event_with_transition(self, make_event) -> None:
        client, pipe = _client_with_pipeline()
        event = make_event("SHP-001", TrackingEventCode.ORDER_CONFIRMED)

        updated = await RedisShipmentStore(client).record_event(event, expected_version=0, transition=_transition())

        assert updated.status == ShipmentStatus.CONFIRMED
        assert updated.version == 1
        pipe.watch.assert_awaited_once_with("cargocore:shipment:SHP-001")
        pipe.multi.assert_called_once()
        set_keys = [c.args[0] for c in pipe.set.call_args_list]
        assert set_keys == [f"cargocore:event:{event.event_id}", "cargocore:shipment:SHP-001"]
        push_keys = [c.args[0] for c in pipe.rpush.call_args_list]
        assert push_keys == ["cargocore:events:SHP-001", "cargocore:transitions:SHP-001"]
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_record_event_without_transition(self, make_event) -> None:
        client, pipe = _client_with_pipeline()
        updated = await RedisShipmentStore(client).record_event(
            make_event("SHP-001", TrackingEventCode.DELAYED), expected_version=0
        )
        assert updated == SHIPMENT
        assert pipe.set.call_count == 1
        assert pipe.rpush.call_count == 1

    @pytest.mark.asyncio
    async def test_stale_version_conflicts_before_exec(self, make_event) -> None:
        client, pipe = _client_with_pipeline(SHIPMENT.model_copy(update={"version": 4}))
        with pytest.raises(ConcurrentUpdateConflict):
            await RedisShipmentStore(client).record_event(
                make_event("SHP-001", TrackingEventCode.PICKED_UP), expected_version=3
            )
        pipe.multi.assert_not_called()
        pipe.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_watch_error_is_conflict(self) -> None:
        client, pipe = _client_with_pipeline()
        pipe.execute.side_effect = redis.WatchError("watched key changed")
        with pytest.raises(ConcurrentUpdateConflict):
            await RedisShipmentStore(client).update_status(
                "SHP-001", expected_version=0, transition=_transition()
            )

    @pytest.mark.asyncio
    async def test_missing_shipment(self) -> None:
        client, pipe = _client_with_pipeline(stored=None)
        with pytest.raises(NotFoundError):
            await RedisShipmentStore(client).update_status(
                "SHP-001", expected_version=0, transition=_transition()
            )

    @pytest.mark.asyncio
    async def test_replace_missing_event(self, make_event) -> None:
        client = MagicMock()
        client.set = AsyncMock(return_value=None)
        with pytest.raises(NotFoundError):
            await RedisShipmentStore(client).replace_event(make_event("SHP-001", TrackingEventCode.AT_SEA))
        assert client.set.await_args.kwargs == {"xx": True}

    @pytest.mark.asyncio
    async def test_delete_event(self, make_event) -> None:
        event = make_event("SHP-001", TrackingEventCode.PICKED_UP)
        client, pipe = _client_with_pipeline()
        pipe.get = AsyncMock(return_value=event.model_dump_json())
        pipe.execute = AsyncMock(return_value=[1, 1])

        assert await RedisShipmentStore(client).delete_event(event.event_id) == event

        pipe.watch.assert_awaited_once_with(f"cargocore:event:{event.event_id}")
        pipe.multi.assert_called_once()
        pipe.delete.assert_called_once_with(f"cargocore:event:{event.event_id}")
        pipe.lrem.assert_called_once_with("cargocore:events:SHP-001", 0, event.event_id)
        pipe.set.assert_not_called()
        pipe.rpush.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_missing_event(self) -> None:
        client, pipe = _client_with_pipeline(stored=None)
        with pytest.raises(NotFoundError):
            await RedisShipmentStore(client).delete_event("missing")
        pipe.multi.assert_not_called()

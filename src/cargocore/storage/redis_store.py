"""Redis-backed shipment store.

Key layout (``{prefix}`` defaults to ``cargocore``)::

    {prefix}:shipments                  SET   of shipment ids
    {prefix}:shipment:{shipment_id}     STR   Shipment JSON
    {prefix}:event:{event_id}           STR   TrackingEvent JSON
    {prefix}:events:{shipment_id}       LIST  event ids, insertion order
    {prefix}:transitions:{shipment_id}  LIST  StatusTransition JSON, oldest first

Conditional writes use WATCH / MULTI / EXEC on the shipment key. A failed
EXEC surfaces as ConcurrentUpdateConflict; connection failures as StorageError.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import redis
import redis.asyncio as aioredis

from ..config import CargoConfig
from ..exceptions import ConcurrentUpdateConflict, ConfigurationError, NotFoundError, StorageError
from ..tracking.models import Shipment, StatusTransition, TrackingEvent
from .base import matches

logger = logging.getLogger(__name__)


class RedisShipmentStore:
    def __init__(self, client: aioredis.Redis, prefix: str = "cargocore") -> None:
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_config(cls, config: CargoConfig) -> RedisShipmentStore:
        if not config.redis_url:
            raise ConfigurationError("REDIS_URL is required for the Redis shipment store")
        client = aioredis.from_url(config.redis_url, decode_responses=True)
        return cls(client, prefix=config.redis_key_prefix)

    async def close(self) -> None:
        await self._redis.aclose()

    # ── Keys ─────────────────────────────────────────────────────

    def _index_key(self) -> str:
        return f"{self._prefix}:shipments"

    def _shipment_key(self, shipment_id: str) -> str:
        return f"{self._prefix}:shipment:{shipment_id}"

    def _event_key(self, event_id: str) -> str:
        return f"{self._prefix}:event:{event_id}"

    def _events_key(self, shipment_id: str) -> str:
        return f"{self._prefix}:events:{shipment_id}"

    def _transitions_key(self, shipment_id: str) -> str:
        return f"{self._prefix}:transitions:{shipment_id}"

    # ── Reads ────────────────────────────────────────────────────

    async def get_shipment(self, shipment_id: str) -> Optional[Shipment]:
        try:
            raw = await self._redis.get(self._shipment_key(shipment_id))
        except redis.RedisError as e:
            raise StorageError(f"shipment read failed: {e}", shipment_id=shipment_id) from e
        return Shipment.model_validate_json(raw) if raw else None

    async def find_shipments(self, filters: Mapping[str, Any]) -> list[Shipment]:
        try:
            ids = sorted(await self._redis.smembers(self._index_key()))
            raws = await self._redis.mget([self._shipment_key(i) for i in ids]) if ids else []
        except redis.RedisError as e:
            raise StorageError(f"shipment scan failed: {e}") from e
        shipments = (Shipment.model_validate_json(raw) for raw in raws if raw)
        return [s for s in shipments if matches(s, filters)]

    async def get_event(self, event_id: str) -> Optional[TrackingEvent]:
        try:
            raw = await self._redis.get(self._event_key(event_id))
        except redis.RedisError as e:
            raise StorageError(f"event read failed: {e}", event_id=event_id) from e
        return TrackingEvent.model_validate_json(raw) if raw else None

    async def list_events(self, shipment_id: str) -> list[TrackingEvent]:
        try:
            ids = await self._redis.lrange(self._events_key(shipment_id), 0, -1)
            raws = await self._redis.mget([self._event_key(i) for i in ids]) if ids else []
        except redis.RedisError as e:
            raise StorageError(f"event list failed: {e}", shipment_id=shipment_id) from e
        events = [TrackingEvent.model_validate_json(raw) for raw in raws if raw]
        return sorted(events, key=lambda e: e.timestamp, reverse=True)

    async def list_transitions(self, shipment_id: str) -> list[StatusTransition]:
        try:
            raws = await self._redis.lrange(self._transitions_key(shipment_id), 0, -1)
        except redis.RedisError as e:
            raise StorageError(f"history read failed: {e}", shipment_id=shipment_id) from e
        return [StatusTransition.model_validate_json(raw) for raw in raws]

    # ── Writes ───────────────────────────────────────────────────

    async def add_shipment(self, shipment: Shipment) -> Shipment:
        # SADD of an existing id is a no-op, so a duplicate leaves the index unchanged.
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(self._shipment_key(shipment.shipment_id), shipment.model_dump_json(), nx=True)
                pipe.sadd(self._index_key(), shipment.shipment_id)
                created, _ = await pipe.execute()
        except redis.RedisError as e:
            raise StorageError(f"shipment insert failed: {e}", shipment_id=shipment.shipment_id) from e
        if not created:
            raise ValueError(f"shipment already exists: {shipment.shipment_id}")
        return shipment

    async def _conditional_write(
        self,
        shipment_id: str,
        expected_version: int,
        transition: Optional[StatusTransition],
        event: Optional[TrackingEvent] = None,
    ) -> Shipment:
        key = self._shipment_key(shipment_id)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                raw = await pipe.get(key)
                if raw is None:
                    raise NotFoundError(f"shipment not found: {shipment_id}", shipment_id=shipment_id)

                current = Shipment.model_validate_json(raw)
                if current.version != expected_version:
                    raise ConcurrentUpdateConflict(
                        shipment_id=shipment_id,
                        expected_version=expected_version,
                        actual_version=current.version,
                    )
                if event is not None and await pipe.exists(self._event_key(event.event_id)):
                    raise ValueError(f"event already exists: {event.event_id}")

                updated = current
                if transition is not None:
                    updated = current.model_copy(
                        update={
                            "status": transition.to_status,
                            "version": transition.version,
                            "updated_at": transition.at,
                        }
                    )

                pipe.multi()
                if event is not None:
                    pipe.set(self._event_key(event.event_id), event.model_dump_json())
                    pipe.rpush(self._events_key(shipment_id), event.event_id)
                if transition is not None:
                    pipe.set(key, updated.model_dump_json())
                    pipe.rpush(self._transitions_key(shipment_id), transition.model_dump_json())
                await pipe.execute()
        except redis.WatchError as e:
            logger.info("store.cas_conflict shipment_id=%s expected_version=%d", shipment_id, expected_version)
            raise ConcurrentUpdateConflict(shipment_id=shipment_id, expected_version=expected_version) from e
        except redis.RedisError as e:
            raise StorageError(f"conditional write failed: {e}", shipment_id=shipment_id) from e
        return updated

    async def record_event(
        self,
        event: TrackingEvent,
        *,
        expected_version: int,
        transition: Optional[StatusTransition] = None,
    ) -> Shipment:
        return await self._conditional_write(event.shipment_id, expected_version, transition, event=event)

    async def update_status(
        self,
        shipment_id: str,
        *,
        expected_version: int,
        transition: StatusTransition,
    ) -> Shipment:
        return await self._conditional_write(shipment_id, expected_version, transition)

    async def replace_event(self, event: TrackingEvent) -> TrackingEvent:
        try:
            replaced = await self._redis.set(self._event_key(event.event_id), event.model_dump_json(), xx=True)
        except redis.RedisError as e:
            raise StorageError(f"event update failed: {e}", event_id=event.event_id) from e
        if not replaced:
            raise NotFoundError(f"tracking event not found: {event.event_id}", event_id=event.event_id)
        return event

    async def delete_event(self, event_id: str) -> TrackingEvent:
        key = self._event_key(event_id)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                raw = await pipe.get(key)
                if raw is None:
                    raise NotFoundError(f"tracking event not found: {event_id}", event_id=event_id)
                event = TrackingEvent.model_validate_json(raw)

                pipe.multi()
                pipe.delete(key)
                pipe.lrem(self._events_key(event.shipment_id), 0, event_id)
                await pipe.execute()
        except redis.WatchError as e:
            logger.info("store.event_conflict event_id=%s", event_id)
            raise ConcurrentUpdateConflict("tracking event was modified concurrently", event_id=event_id) from e
        except redis.RedisError as e:
            raise StorageError(f"event delete failed: {e}", event_id=event_id) from e
        return event


__all__ = ["RedisShipmentStore"]

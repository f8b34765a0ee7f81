from __future__ import annotations

import time
from dataclasses import dataclass
from threading import RLock
from typing import Callable, Protocol

from livedarts.sync.snapshot import RemoteMatchRecord


class RemoteStoreError(Exception):
    pass


class LeaseError(RemoteStoreError):
    """Raised when a write or lease request conflicts with another device's lease."""


@dataclass(frozen=True)
class Lease:
    match_id: str
    device_id: str
    user_id: str | None
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class RemoteStore(Protocol):
    def fetch(self, match_id: str) -> RemoteMatchRecord | None: ...

    def push(self, record: RemoteMatchRecord, *, device_id: str) -> bool: ...

    def acquire_lease(
        self, match_id: str, *, device_id: str, user_id: str | None, ttl_sec: float, force: bool = False
    ) -> Lease: ...

    def release_lease(self, match_id: str, *, device_id: str) -> bool: ...

    def lease(self, match_id: str) -> Lease | None: ...

    def live_records(self) -> list[RemoteMatchRecord]: ...


class InMemoryRemoteStore:
    """
    Shared match store with single-writer leases.

    - A push is accepted only from the device holding a valid lease.
    - A push whose version is not newer than the stored record is ignored,
      so a late, stale push cannot overwrite fresher state.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._lock = RLock()
        self._clock = clock
        self._records: dict[str, RemoteMatchRecord] = {}
        self._leases: dict[str, Lease] = {}

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._leases.clear()

    def put(self, record: RemoteMatchRecord) -> None:
        """Create or replace a record without a lease (tournament engine side)."""
        with self._lock:
            self._records[record.match_id] = record

    def fetch(self, match_id: str) -> RemoteMatchRecord | None:
        with self._lock:
            record = self._records.get(match_id)
            return record.model_copy() if record is not None else None

    def push(self, record: RemoteMatchRecord, *, device_id: str) -> bool:
        with self._lock:
            lease = self._leases.get(record.match_id)
            if lease is None or not lease.is_valid(self._clock()):
                raise LeaseError(f"no valid lease for match {record.match_id}")
            if lease.device_id != device_id:
                raise LeaseError(f"match {record.match_id} is leased to another device")

            existing = self._records.get(record.match_id)
            if existing is not None and record.version <= existing.version:
                return False
            if existing is not None and record.started_by_user_id is None:
                record = record.model_copy(update={"started_by_user_id": existing.started_by_user_id})
            self._records[record.match_id] = record
            return True

    def acquire_lease(
        self, match_id: str, *, device_id: str, user_id: str | None, ttl_sec: float, force: bool = False
    ) -> Lease:
        now = self._clock()
        with self._lock:
            current = self._leases.get(match_id)
            held_elsewhere = current is not None and current.is_valid(now) and current.device_id != device_id
            if held_elsewhere and not force:
                raise LeaseError(f"match {match_id} is leased to device {current.device_id}")

            lease = Lease(match_id=match_id, device_id=device_id, user_id=user_id, expires_at=now + ttl_sec)
            self._leases[match_id] = lease

            record = self._records.get(match_id) or RemoteMatchRecord(match_id=match_id)
            update: dict = {"live_device_id": device_id}
            if record.status != "completed":
                update["status"] = "in_progress"
            if user_id is not None:
                update["started_by_user_id"] = user_id
            self._records[match_id] = record.model_copy(update=update)
            return lease

    def release_lease(self, match_id: str, *, device_id: str) -> bool:
        with self._lock:
            current = self._leases.get(match_id)
            if current is None or current.device_id != device_id:
                return False
            del self._leases[match_id]
            record = self._records.get(match_id)
            if record is not None:
                self._records[match_id] = record.model_copy(update={"live_device_id": None})
            return True

    def lease(self, match_id: str) -> Lease | None:
        with self._lock:
            current = self._leases.get(match_id)
            if current is None or not current.is_valid(self._clock()):
                return None
            return current

    def live_records(self) -> list[RemoteMatchRecord]:
        """Records still being scored: a live device holding a valid lease."""
        now = self._clock()
        with self._lock:
            live = []
            for record in self._records.values():
                lease = self._leases.get(record.match_id)
                if record.live_device_id is not None and lease is not None and lease.is_valid(now):
                    live.append(record.model_copy())
            return live

"""GPIO Bridge — Handle registry.

The registry is the single point of truth for every open resource:
  - local controller scopes (direct backend)
  - daemon sessions
  - SPI and I2C handles

Each resource lives in an arena slot.  The public id handed to callers is
``generation << SLOT_BITS | slot``; closing a resource bumps the slot's
generation, so a stale id that happens to reuse a slot number is rejected
instead of reaching someone else's device.

Every record names its :class:`Owner` (backend kind plus the controller or
session record that scopes it).  Lookups match on id, resource kind *and*
owner, which is what stops a handle from crossing backends or sessions.

Thread safety:
  - The registry lock guards slot allocation and release, so two concurrent
    opens never receive the same id.
  - Each record carries its own lock; :meth:`HandleRegistry.checkout` holds it
    for the duration of one operation and :meth:`HandleRegistry.release` takes
    it before freeing the slot, so a close waits for in-flight transfers.
    The lock is re-entrant: a transfer that hits a dead daemon connection
    can drain its own session while still checked out.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from gpio_bridge.codes import ErrorCode
from gpio_bridge.constants import BackendKind, ResourceKind
from gpio_bridge.exceptions import error_for_code
from gpio_bridge.logging import get_logger

log = get_logger(__name__)

SLOT_BITS = 16


@dataclass(frozen=True)
class Owner:
    """Backend plus the controller/session record that owns a resource."""

    backend: BackendKind
    scope: int | None = None


@dataclass(eq=False)
class HandleRecord:
    kind: ResourceKind
    owner: Owner
    resource: Any
    info: dict[str, Any] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    alive: bool = True


@dataclass
class _Slot:
    generation: int = 0
    record: HandleRecord | None = None


class HandleRegistry:
    """Arena of generation-counted resource records.

    Usage::

        registry = HandleRegistry()
        owner = Owner(BackendKind.DIRECT, scope=controller_id)
        handle = registry.register(ResourceKind.SPI, owner, spi_device, channel=0)

        with registry.checkout(handle, ResourceKind.SPI, owner) as record:
            record.resource.xfer2([0x9F, 0, 0])

        registry.release(handle, ResourceKind.SPI, owner)
    """

    def __init__(self, slot_bits: int = SLOT_BITS) -> None:
        self._slot_bits = slot_bits
        self._max_slots = 1 << slot_bits
        self._slots: list[_Slot] = []
        self._free: deque[int] = deque()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Id encoding
    # ------------------------------------------------------------------

    def _encode(self, index: int, generation: int) -> int:
        return (generation << self._slot_bits) | index

    def _decode(self, handle: int) -> tuple[int, int]:
        return handle & (self._max_slots - 1), handle >> self._slot_bits

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self, kind: ResourceKind, owner: Owner, resource: Any, **info: Any
    ) -> int:
        """Store *resource* and return its new id.

        Raises:
            HandleError: ``NO_HANDLE`` when every slot is in use.
        """
        record = HandleRecord(kind=kind, owner=owner, resource=resource, info=info)
        with self._lock:
            if self._free:
                index = self._free.popleft()
            elif len(self._slots) < self._max_slots:
                index = len(self._slots)
                self._slots.append(_Slot())
            else:
                raise error_for_code(ErrorCode.NO_HANDLE, kind=kind.value)
            slot = self._slots[index]
            slot.record = record
            handle = self._encode(index, slot.generation)

        log.debug("handle_registered", kind=kind.value, handle=handle, backend=owner.backend.value)
        return handle

    def get(self, handle: int, kind: ResourceKind, owner: Owner) -> HandleRecord | None:
        """Return the live record for *handle*, or ``None``.

        ``None`` covers every way a handle can be wrong: never issued, closed,
        stale generation, other resource kind, other owner.
        """
        if not isinstance(handle, int) or handle < 0:
            return None
        index, generation = self._decode(handle)
        with self._lock:
            if index >= len(self._slots):
                return None
            slot = self._slots[index]
            record = slot.record
            if record is None or slot.generation != generation:
                return None
            if record.kind is not kind or record.owner != owner:
                return None
            return record

    @contextmanager
    def checkout(
        self,
        handle: int,
        kind: ResourceKind,
        owner: Owner,
        code: ErrorCode = ErrorCode.BAD_HANDLE,
    ) -> Iterator[HandleRecord]:
        """Hold *handle*'s record lock for one operation.

        Raises:
            HandleError: the handle is not live for this kind/owner (``code``).
        """
        record = self.get(handle, kind, owner)
        if record is None:
            raise error_for_code(code, handle=handle, kind=kind.value)
        with record.lock:
            if not record.alive:
                raise error_for_code(code, handle=handle, kind=kind.value)
            yield record

    def release(self, handle: int, kind: ResourceKind, owner: Owner) -> HandleRecord | None:
        """Free *handle* and return its record, or ``None`` if it was not live.

        Waits for an in-flight :meth:`checkout` on the same handle to finish.
        """
        record = self.get(handle, kind, owner)
        if record is None:
            return None
        with record.lock:
            if not record.alive:
                return None
            self._free_slot(handle, record)
        log.debug("handle_released", kind=kind.value, handle=handle, backend=owner.backend.value)
        return record

    def _free_slot(self, handle: int, record: HandleRecord) -> None:
        index, _ = self._decode(handle)
        with self._lock:
            slot = self._slots[index]
            record.alive = False
            slot.record = None
            slot.generation += 1
            self._free.append(index)

    def drain(self, owner: Owner) -> list[tuple[int, HandleRecord]]:
        """Release every record owned by *owner* and return them.

        Used when a session disconnects or a controller terminates; the caller
        closes the underlying resources.
        """
        with self._lock:
            owned = [
                (self._encode(index, slot.generation), slot.record)
                for index, slot in enumerate(self._slots)
                if slot.record is not None and slot.record.owner == owner
            ]

        drained: list[tuple[int, HandleRecord]] = []
        for handle, record in owned:
            with record.lock:
                if not record.alive:
                    continue
                self._free_slot(handle, record)
            drained.append((handle, record))
        return drained

    def owned_by(self, owner: Owner, kind: ResourceKind | None = None) -> list[int]:
        """Return the live ids owned by *owner*, optionally filtered by kind."""
        with self._lock:
            return [
                self._encode(index, slot.generation)
                for index, slot in enumerate(self._slots)
                if slot.record is not None
                and slot.record.owner == owner
                and (kind is None or slot.record.kind is kind)
            ]

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for slot in self._slots if slot.record is not None)


# Process-wide registry shared by every backend unless one is injected.
_registry = HandleRegistry()


def get_registry() -> HandleRegistry:
    return _registry

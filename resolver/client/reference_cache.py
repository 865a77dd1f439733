# resolver/client/reference_cache.py
"""Session-wide cache of sections, facilities, technicians and users.

Every table in a session shares one ``ReferenceDataCache``. The first request
for a kind starts a single fetch; anyone else asking while it runs waits on
that same fetch. Values are only replaced by an explicit ``refetch``, and
every state change is broadcast to all subscribers.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class ReferenceKind(str, Enum):
    SECTIONS = "sections"
    FACILITIES = "facilities"
    TECHNICIANS = "technicians"
    USERS = "users"


@dataclass(frozen=True)
class ReferenceState:
    items: tuple = ()
    loading: bool = False
    error: Exception | None = None
    loaded: bool = False


Loader = Callable[[], Awaitable[list]]
Listener = Callable[[ReferenceKind, ReferenceState], None]


class ReferenceDataCache:
    def __init__(self, api=None, loaders: dict[ReferenceKind, Loader] | None = None):
        if loaders is None:
            loaders = {
                ReferenceKind.SECTIONS: api.list_sections,
                ReferenceKind.FACILITIES: api.list_facilities,
                ReferenceKind.TECHNICIANS: api.list_technicians,
                ReferenceKind.USERS: api.list_users,
            }
        self._loaders = {ReferenceKind(k): v for k, v in loaders.items()}
        self._states = {kind: ReferenceState() for kind in ReferenceKind}
        self._index: dict[ReferenceKind, dict[int, Any]] = {kind: {} for kind in ReferenceKind}
        self._tasks: dict[ReferenceKind, asyncio.Task] = {}
        self._generation = dict.fromkeys(ReferenceKind, 0)
        self._listeners: list[Listener] = []

    def get(self, kind) -> ReferenceState:
        """Current state of ``kind``; starts the first fetch if none has run.

        Must be called from inside a running event loop.
        """
        kind = ReferenceKind(kind)
        if kind not in self._tasks:
            self._start(kind)
        return self._states[kind]

    def peek(self, kind) -> ReferenceState:
        """Current state of ``kind`` without starting a fetch."""
        return self._states[ReferenceKind(kind)]

    async def load(self, kind) -> tuple:
        """Wait for ``kind`` to settle and return its items.

        Raises the fetch's error if the latest fetch for ``kind`` failed.
        """
        kind = ReferenceKind(kind)
        if kind not in self._tasks:
            self._start(kind)
        while True:
            task = self._tasks[kind]
            # shield: a consumer giving up must not cancel everyone's fetch
            await asyncio.shield(task)
            if self._tasks[kind] is task:
                break
        state = self._states[kind]
        if state.error is not None:
            raise state.error
        return state.items

    async def load_all(self, kinds=tuple(ReferenceKind)) -> dict[ReferenceKind, tuple]:
        kinds = [ReferenceKind(k) for k in kinds]
        results = await asyncio.gather(*(self.load(k) for k in kinds))
        return dict(zip(kinds, results))

    async def refetch(self, kind) -> tuple:
        """Invalidate ``kind`` and fetch it again for every consumer."""
        kind = ReferenceKind(kind)
        logger.info(f"Refetching reference data: {kind.value}")
        self._start(kind)
        return await self.load(kind)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def lookup(self, kind, item_id: int | None):
        if item_id is None:
            return None
        return self._index[ReferenceKind(kind)].get(item_id)

    def name_of(self, kind, item_id: int | None) -> str | None:
        item = self.lookup(kind, item_id)
        if item is None:
            return None
        return getattr(item, "full_name", None) or getattr(item, "name", None)

    def _start(self, kind: ReferenceKind) -> None:
        self._generation[kind] += 1
        previous = self._states[kind]
        self._set(kind, ReferenceState(items=previous.items, loading=True, loaded=previous.loaded))
        loop = asyncio.get_running_loop()
        self._tasks[kind] = loop.create_task(self._fetch(kind, self._generation[kind]))

    async def _fetch(self, kind: ReferenceKind, generation: int) -> None:
        previous = self._states[kind]
        try:
            items = await self._loaders[kind]()
        except Exception as exc:
            if generation != self._generation[kind]:
                return
            logger.error(f"Failed to load {kind.value}: {exc}")
            self._set(kind, ReferenceState(items=previous.items, error=exc, loaded=previous.loaded))
            return
        if generation != self._generation[kind]:
            logger.debug(f"Dropping superseded {kind.value} response")
            return
        self._index[kind] = {item.id: item for item in items}
        self._set(kind, ReferenceState(items=tuple(items), loaded=True))
        logger.debug(f"Loaded {len(items)} {kind.value}")

    def _set(self, kind: ReferenceKind, state: ReferenceState) -> None:
        self._states[kind] = state
        for listener in list(self._listeners):
            try:
                listener(kind, state)
            except Exception:
                logger.exception(f"Reference data listener failed for {kind.value}")

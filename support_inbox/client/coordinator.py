# support_inbox/client/coordinator.py
"""
Optimistic mutations over the client query cache.

Every mutation runs the same protocol:

1. cancel in-flight reads of the keys it touches, so a late response cannot
   overwrite the optimistic value;
2. snapshot those keys;
3. write the predicted result into the cache;
4. send the request;
5. on failure restore the snapshot exactly and keep the server's message;
6. whatever happened, invalidate the keys and refetch them from the server.

Concurrent mutations on the same ticket each keep their own snapshot and do
not coordinate, so rolling back one of them can reinstate a value that predates
the other's optimistic write until the reconciling refetch lands.
"""

import asyncio
import enum
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from support_inbox.client.api import ApiError, TicketsAPI
from support_inbox.client.cache import CacheKey, QueryCache

logger = structlog.get_logger(__name__)

STATS_KEY: CacheKey = ("stats",)
TICKET_LISTS: CacheKey = ("tickets",)
MUTATION_HISTORY = 50


def ticket_key(ticket_id: int) -> CacheKey:
    return ("ticket", ticket_id)


def notes_key(ticket_id: int) -> CacheKey:
    return ("notes", ticket_id)


def tickets_key(**params) -> CacheKey:
    return ("tickets", tuple(sorted((k, v) for k, v in params.items() if v is not None)))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MutationState(str, enum.Enum):
    PENDING = "pending"
    APPLIED = "applied"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    RECONCILING = "reconciling"
    IDLE = "idle"


_TRANSITIONS: dict[MutationState, frozenset[MutationState]] = {
    MutationState.PENDING: frozenset({MutationState.APPLIED}),
    MutationState.APPLIED: frozenset({MutationState.COMMITTED, MutationState.ROLLED_BACK}),
    MutationState.COMMITTED: frozenset({MutationState.RECONCILING}),
    MutationState.ROLLED_BACK: frozenset({MutationState.RECONCILING}),
    MutationState.RECONCILING: frozenset({MutationState.IDLE}),
    MutationState.IDLE: frozenset(),
}


class InvalidTransition(RuntimeError):
    pass


class Mutation:
    def __init__(self, name: str, reconcile: list[CacheKey]):
        self.name = name
        self.reconcile = reconcile
        self.state = MutationState.PENDING
        self.history = [MutationState.PENDING]
        self.snapshot: dict[CacheKey, Any] = {}
        self.result: Any = None
        self.error: Exception | None = None

    def transition(self, state: MutationState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.name}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def __repr__(self) -> str:
        return f"<Mutation {self.name} {self.state.value}>"


class MutationError(Exception):
    """A mutation failed and its optimistic changes were rolled back."""

    def __init__(self, message: str, mutation: Mutation):
        super().__init__(message)
        self.message = message
        self.mutation = mutation


class CacheCoordinator:
    def __init__(
        self,
        api: TicketsAPI,
        cache: QueryCache | None = None,
        current_user: dict | None = None,
    ):
        self.api = api
        self.cache = cache if cache is not None else QueryCache()
        self.current_user = current_user
        # recent mutations, newest last
        self.mutations: deque[Mutation] = deque(maxlen=MUTATION_HISTORY)

    # reads

    async def load_tickets(
        self,
        page: int = 1,
        limit: int | None = None,
        status: str | None = None,
        priority: str | None = None,
        search: str | None = None,
    ) -> dict:
        params = {"page": page, "limit": limit, "status": status, "priority": priority, "search": search}
        return await self.cache.fetch(
            tickets_key(**params), lambda: self.api.fetch_tickets(**params)
        )

    async def load_ticket(self, ticket_id: int) -> dict:
        return await self.cache.fetch(
            ticket_key(ticket_id), lambda: self.api.fetch_ticket(ticket_id)
        )

    async def load_notes(self, ticket_id: int) -> list[dict]:
        return await self.cache.fetch(notes_key(ticket_id), lambda: self.api.fetch_notes(ticket_id))

    async def load_stats(self) -> dict:
        return await self.cache.fetch(STATS_KEY, self.api.fetch_stats)

    # mutations

    async def update_ticket(
        self, ticket_id: int, status: str | None = None, priority: str | None = None
    ) -> dict:
        changes = {
            field: value
            for field, value in (("status", status), ("priority", priority))
            if value is not None
        }
        detail_key = ticket_key(ticket_id)
        mutation = Mutation(f"update_ticket:{ticket_id}", reconcile=[detail_key, TICKET_LISTS])

        async def apply() -> None:
            await self.cache.cancel(detail_key)
            await self.cache.cancel(TICKET_LISTS)

            list_keys = [
                key
                for key, page in self.cache.entries(TICKET_LISTS)
                if any(row.get("id") == ticket_id for row in (page or {}).get("data", []))
            ]
            mutation.snapshot = self.cache.snapshot([detail_key, *list_keys])

            updated_at = _now_iso()
            current = self.cache.get(detail_key)
            if current is not None:
                self.cache.set(
                    detail_key,
                    {**current, **changes, "updated_at": updated_at},
                    fetcher=lambda: self.api.fetch_ticket(ticket_id),
                )
            for key in list_keys:
                page = self.cache.get(key)
                rows = [
                    {**row, **changes, "updated_at": updated_at} if row.get("id") == ticket_id else row
                    for row in page["data"]
                ]
                self.cache.set(key, {**page, "data": rows})

        return await self._run(
            mutation,
            apply,
            lambda: self.api.update_ticket(ticket_id, **changes),
            fallback_message="Failed to update ticket. Try again.",
        )

    async def add_note(self, ticket_id: int, text: str) -> dict:
        text = (text or "").strip()
        key = notes_key(ticket_id)
        mutation = Mutation(f"add_note:{ticket_id}", reconcile=[key])
        if not text:
            raise MutationError("Note text is required", mutation)

        async def apply() -> None:
            await self.cache.cancel(key)
            mutation.snapshot = self.cache.snapshot([key])

            temp_note = {
                "id": f"temp-{uuid.uuid4().hex}",
                "ticket_id": ticket_id,
                "text": text,
                "created_at": _now_iso(),
                "user": self.current_user or {"id": None, "name": "You", "email": None},
            }
            # the entry may not exist yet, reconciling has to be able to read it back
            self.cache.set(
                key,
                [temp_note, *(self.cache.get(key) or [])],
                fetcher=lambda: self.api.fetch_notes(ticket_id),
            )

        return await self._run(
            mutation,
            apply,
            lambda: self.api.add_note(ticket_id, text),
            fallback_message="Failed to add note. Try again.",
        )

    async def _run(
        self,
        mutation: Mutation,
        apply: Callable[[], Awaitable[None]],
        send: Callable[[], Awaitable[Any]],
        fallback_message: str,
    ) -> Any:
        self.mutations.append(mutation)
        log = logger.bind(mutation=mutation.name)

        await apply()
        mutation.transition(MutationState.APPLIED)

        try:
            mutation.result = await send()
        except Exception as exc:
            self.cache.restore(mutation.snapshot)
            mutation.error = exc
            mutation.transition(MutationState.ROLLED_BACK)
            log.info("mutation_rolled_back", error=str(exc), keys=list(mutation.snapshot))
        else:
            mutation.transition(MutationState.COMMITTED)
            log.debug("mutation_committed")

        mutation.transition(MutationState.RECONCILING)
        refetches = [task for prefix in mutation.reconcile for task in self.cache.invalidate(prefix)]
        if refetches:
            await asyncio.gather(*refetches)
        mutation.transition(MutationState.IDLE)

        if mutation.error is not None:
            message = (
                mutation.error.message if isinstance(mutation.error, ApiError) else fallback_message
            )
            raise MutationError(message, mutation) from mutation.error
        return mutation.result

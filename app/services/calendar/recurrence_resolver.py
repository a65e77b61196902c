"""
Recurrence backfill for expanded event instances.

Providers return expanded instances of a recurring series carrying only a
``recurringEventId``. The resolver looks each distinct master up once and
copies its recurrence rules onto every instance that references it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.calendar_domain import Event

logger = get_logger(__name__)

# (account_email, calendar_id, recurring_event_id)
MasterKey = tuple[str, str, str]
MasterFetcher = Callable[[str, str, str], Awaitable[list[str]]]


def master_key(event: Event) -> MasterKey:
    return (event.account_email, event.calendar_id, event.recurring_event_id or "")


def needs_recurrence(event: Event) -> bool:
    return bool(event.recurring_event_id) and not event.recurrence


class RecurrenceResolver:
    """
    Backfills ``recurrence`` on instances from their series master.

    The lookup cache lives on the instance; create one resolver per
    aggregation cycle.
    """

    def __init__(self, fetch_master: MasterFetcher, max_concurrency: int | None = None):
        self._fetch_master = fetch_master
        self._semaphore = asyncio.Semaphore(
            max_concurrency or settings.CALENDAR_MAX_CONCURRENT_FETCHES
        )
        self._resolved: dict[MasterKey, list[str]] = {}
        self._failed: set[MasterKey] = set()
        self.lookup_count = 0

    @property
    def failed_keys(self) -> set[MasterKey]:
        return set(self._failed)

    async def _lookup(self, key: MasterKey) -> list[str]:
        async with self._semaphore:
            self.lookup_count += 1
            account_email, calendar_id, recurring_event_id = key
            return await self._fetch_master(account_email, calendar_id, recurring_event_id)

    async def resolve(self, events: Iterable[Event]) -> list[Event]:
        """
        Return the events with recurrence backfilled where a master was found.

        Instances whose master lookup fails keep an empty recurrence list.
        Input events are not mutated.
        """
        events = list(events)

        pending: list[MasterKey] = []
        seen: set[MasterKey] = set()
        for event in events:
            if not needs_recurrence(event):
                continue
            key = master_key(event)
            if key in seen or key in self._resolved or key in self._failed:
                continue
            seen.add(key)
            pending.append(key)

        if pending:
            logger.info("Resolving recurring masters", master_count=len(pending))
            outcomes = await asyncio.gather(
                *(self._lookup(key) for key in pending), return_exceptions=True
            )
            for key, outcome in zip(pending, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    self._failed.add(key)
                    logger.warning(
                        "Recurring master lookup failed",
                        account_email=key[0],
                        calendar_id=key[1],
                        recurring_event_id=key[2],
                        error=str(outcome),
                        error_type=type(outcome).__name__,
                    )
                    continue
                self._resolved[key] = list(outcome or [])

        resolved_events: list[Event] = []
        patched = 0
        for event in events:
            if needs_recurrence(event):
                rules = self._resolved.get(master_key(event))
                if rules:
                    event = replace(event, recurrence=list(rules))
                    patched += 1
            resolved_events.append(event)

        if patched:
            logger.info("Recurring instances patched", instance_count=patched)
        return resolved_events

"""
Multi-source calendar aggregation.

Fans out event fetches across every enabled calendar of every active
account, merges the results with provenance, backfills recurrence once over
the merged set and returns a deterministically ordered event list.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from datetime import datetime, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

import structlog

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.calendar_domain import (
    AggregationResult,
    CalendarAccount,
    CalendarSource,
    Event,
    SourceFetchFailure,
)
from app.models.domain.task_domain import Task
from app.services.calendar.google_client import GoogleCalendarError, google_calendar_service
from app.services.calendar.normalizer import (
    NormalizationBatch,
    normalize_events,
    normalize_master_recurrence,
)
from app.services.calendar.recurrence_resolver import MasterFetcher, RecurrenceResolver
from app.services.calendar.task_markers import derive_task_markers

logger = get_logger(__name__)


class AggregationError(Exception):
    """Raised when an aggregation cycle produces nothing usable."""

    def __init__(
        self,
        message: str,
        failures: list[SourceFetchFailure] | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.failures = failures or []
        self.recoverable = recoverable

    @property
    def failed_accounts(self) -> list[str]:
        return list(dict.fromkeys(failure.account_email for failure in self.failures))


def event_sort_key(event: Event, tz: tzinfo):
    return (event.start_instant(tz), event.title, event.layout_key)


def session_key_for(accounts: Iterable[CalendarAccount]) -> str:
    """Default supersession scope: the identities of the active accounts."""
    return ",".join(sorted({account.email for account in accounts if account.active}))


class CalendarAggregator:
    """
    Aggregates events from all enabled sources of all active accounts.

    ``transport`` is any object exposing the coroutine methods
    ``list_calendars(token)``, ``list_events(token, calendar_id, time_min,
    time_max)`` and ``get_event(token, event_id, calendar_id)``.

    Generations are counted per session key, so requests from one caller
    only ever supersede that caller's earlier requests.
    """

    def __init__(self, transport: Any = None, max_concurrency: int | None = None):
        self._transport = transport or google_calendar_service
        self._max_concurrency = max_concurrency or settings.CALENDAR_MAX_CONCURRENT_FETCHES
        self._generations: dict[str, int] = {}
        self._latest: dict[str, AggregationResult] = {}

    def generation(self, session_key: str) -> int:
        return self._generations.get(session_key, 0)

    def is_current(self, result: AggregationResult) -> bool:
        """Whether ``result`` belongs to its session's most recent request."""
        return result.generation == self.generation(result.session_key)

    def latest_result(self, session_key: str) -> AggregationResult | None:
        return self._latest.get(session_key)

    async def aggregate(
        self,
        accounts: Sequence[CalendarAccount],
        time_min: datetime,
        time_max: datetime,
        tasks: Iterable[Task] | None = None,
        tz: tzinfo | None = None,
        session_key: str | None = None,
    ) -> AggregationResult:
        """
        Run one aggregation cycle.

        A newer call with the same session key supersedes this one: if it
        started while this one was in flight, the returned result is marked
        stale and not published as the session's latest result. Without an
        explicit ``session_key`` the set of active accounts is the session.

        Raises:
            AggregationError: No active account, no source to fetch, or every
                source failed
        """
        key = session_key or session_key_for(accounts)
        generation = self.generation(key) + 1
        self._generations[key] = generation
        tz = tz or ZoneInfo(settings.DEFAULT_TIMEZONE)

        with structlog.contextvars.bound_contextvars(sync_generation=generation):
            result = await self._aggregate(generation, accounts, time_min, time_max, tasks, tz)
            result.session_key = key

            if generation != self.generation(key):
                result.stale = True
                logger.info(
                    "Discarding stale aggregation result",
                    newest_generation=self.generation(key),
                )
            else:
                self._latest[key] = result
            return result

    async def _aggregate(
        self,
        generation: int,
        accounts: Sequence[CalendarAccount],
        time_min: datetime,
        time_max: datetime,
        tasks: Iterable[Task] | None,
        tz: tzinfo,
    ) -> AggregationResult:
        active = [account for account in accounts if account.active]
        if not active:
            raise AggregationError("No active calendar accounts configured", recoverable=False)

        semaphore = asyncio.Semaphore(self._max_concurrency)

        logger.info(
            "Starting calendar aggregation",
            account_count=len(active),
            time_min=time_min.isoformat(),
            time_max=time_max.isoformat(),
        )

        listings = await asyncio.gather(
            *(self._list_sources(semaphore, account) for account in active),
            return_exceptions=True,
        )

        sources: list[CalendarSource] = []
        targets: list[tuple[CalendarAccount, CalendarSource]] = []
        failures: list[SourceFetchFailure] = []
        for account, listing in zip(active, listings):
            if isinstance(listing, BaseException):
                if isinstance(listing, asyncio.CancelledError):
                    raise listing
                logger.warning(
                    "Calendar listing failed, falling back to primary",
                    account_email=account.email,
                    error=str(listing),
                )
                fallback = CalendarSource.primary_fallback(account.email)
                enabled = self._enabled_sources(account, [fallback])
                if not enabled:
                    # The fallback is not among the chosen calendars
                    failures.append(self._failure_from(account, fallback, listing))
                sources.append(fallback)
            else:
                enabled = self._enabled_sources(account, listing)
                sources.extend(listing)
            targets.extend((account, source) for source in enabled)

        if not targets:
            logger.error("No calendar sources to sync", failed_sources=len(failures))
            raise AggregationError(
                "No calendar sources to sync", failures=failures, recoverable=bool(failures)
            )

        outcomes = await asyncio.gather(
            *(
                self._fetch_source(semaphore, account, source, time_min, time_max)
                for account, source in targets
            ),
            return_exceptions=True,
        )

        merged: list[Event] = []
        fetched = 0
        dropped = 0
        for (account, source), outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                failures.append(self._failure_from(account, source, outcome))
                continue
            fetched += 1
            merged.extend(outcome.events)
            dropped += len(outcome.issues)

        if not fetched:
            logger.error(
                "Calendar aggregation failed for every source",
                failed_sources=len(failures),
            )
            raise AggregationError("Failed to sync any calendar source", failures=failures)

        resolver = RecurrenceResolver(
            self._master_fetcher(active), max_concurrency=self._max_concurrency
        )
        events = await resolver.resolve(merged)
        events.sort(key=lambda event: event_sort_key(event, tz))

        task_markers = derive_task_markers(tasks, time_min, time_max, tz) if tasks else []

        result = AggregationResult(
            generation=generation,
            events=events,
            task_markers=task_markers,
            sources=sources,
            failures=failures,
        )

        logger.info(
            "Calendar aggregation completed",
            event_count=len(events),
            task_marker_count=len(task_markers),
            source_count=len(targets),
            failed_sources=len(failures),
            dropped_events=dropped,
            master_lookups=resolver.lookup_count,
        )
        return result

    async def _list_sources(
        self, semaphore: asyncio.Semaphore, account: CalendarAccount
    ) -> list[CalendarSource]:
        async with semaphore:
            items = await self._transport.list_calendars(account.access_token)
        sources = [CalendarSource.from_api(item, account.email) for item in items]
        return sources or [CalendarSource.primary_fallback(account.email)]

    def _enabled_sources(
        self, account: CalendarAccount, sources: list[CalendarSource]
    ) -> list[CalendarSource]:
        enabled = [source for source in sources if account.is_source_enabled(source)]
        if not enabled and account.enabled_calendar_ids is None:
            # Nothing flagged selected by the provider: show everything
            return list(sources)
        return enabled

    async def _fetch_source(
        self,
        semaphore: asyncio.Semaphore,
        account: CalendarAccount,
        source: CalendarSource,
        time_min: datetime,
        time_max: datetime,
    ) -> NormalizationBatch:
        async with semaphore:
            raws = await self._transport.list_events(
                account.access_token, source.calendar_id, time_min, time_max
            )
        return normalize_events(raws, source)

    def _master_fetcher(self, accounts: Sequence[CalendarAccount]) -> MasterFetcher:
        tokens = {account.email: account.access_token for account in accounts}

        async def fetch_master(account_email: str, calendar_id: str, event_id: str) -> list[str]:
            raw = await self._transport.get_event(tokens[account_email], event_id, calendar_id)
            return normalize_master_recurrence(raw)

        return fetch_master

    def _failure_from(
        self, account: CalendarAccount, source: CalendarSource, error: BaseException
    ) -> SourceFetchFailure:
        status_code = getattr(error, "status_code", None)
        error_code = getattr(error, "error_code", None)
        log = logger.warning if isinstance(error, GoogleCalendarError) else logger.error
        log(
            "Calendar source fetch failed",
            account_email=account.email,
            calendar_id=source.calendar_id,
            status_code=status_code,
            error=str(error),
            error_type=type(error).__name__,
        )
        return SourceFetchFailure(
            account_email=account.email,
            calendar_id=source.calendar_id,
            message=str(error),
            status_code=status_code,
            error_code=error_code,
        )

"""
Calendar API Routes
HTTP endpoints for aggregation, day/week layout and sticky positioning.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.config import settings
from app.infrastructure.observability.logging import get_logger, log_sync_outcome
from app.models.api.calendar_request import (
    CalendarViewRequest,
    StickyRequest,
    SyncRequest,
)
from app.models.api.calendar_response import (
    CalendarEventResponse,
    CalendarSourceResponse,
    CalendarViewResponse,
    DayLayoutResponse,
    SourceFailureResponse,
    StickyPlacementResponse,
    StickyResponse,
    SyncResponse,
)
from app.models.domain.calendar_domain import AggregationResult
from app.services.calendar.aggregator import AggregationError
from app.services.calendar.sticky_positioner import place_sticky_items
from app.services.calendar.view_service import (
    CalendarViewError,
    CalendarViewService,
    calendar_view_service,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])


def get_view_service() -> CalendarViewService:
    return calendar_view_service


def _aggregation_failed(e: AggregationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={
            "message": str(e),
            "failed_accounts": e.failed_accounts,
            "failures": [failure.to_dict() for failure in e.failures],
        },
    )


def _sync_response(result: AggregationResult) -> SyncResponse:
    log_sync_outcome(result.generation, len(result.events), result.failed_accounts, result.stale)
    return SyncResponse(
        generation=result.generation,
        events=[CalendarEventResponse(**event.to_dict()) for event in result.events],
        task_markers=[CalendarEventResponse(**marker.to_dict()) for marker in result.task_markers],
        calendars=[CalendarSourceResponse(**source.to_dict()) for source in result.sources],
        failures=[SourceFailureResponse(**failure.to_dict()) for failure in result.failures],
        failed_accounts=result.failed_accounts,
        sync_error=result.sync_error_message,
        total_count=len(result.events),
        session_key=result.session_key,
        stale=result.stale,
    )


@router.post("/sync", response_model=SyncResponse)
async def sync_calendars(
    request: SyncRequest, service: CalendarViewService = Depends(get_view_service)
):
    """Aggregate events from every enabled calendar of every active account."""
    try:
        result = await service.sync(
            accounts=[account.to_domain() for account in request.accounts],
            time_min=request.time_min,
            time_max=request.time_max,
            tasks=[task.to_domain() for task in request.tasks],
            timezone=request.timezone,
            session_key=request.session_key,
        )
        return _sync_response(result)

    except CalendarViewError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AggregationError as e:
        logger.error("Calendar sync failed", error=str(e), failed_accounts=e.failed_accounts)
        raise _aggregation_failed(e)


@router.post("/view", response_model=CalendarViewResponse)
async def get_calendar_view(
    request: CalendarViewRequest, service: CalendarViewService = Depends(get_view_service)
):
    """Aggregate events and lay out the requested day columns."""
    try:
        view = await service.build_view(
            accounts=[account.to_domain() for account in request.accounts],
            start_date=request.start_date,
            days=request.days,
            tasks=[task.to_domain() for task in request.tasks],
            timezone=request.timezone,
            pixels_per_hour=request.pixels_per_hour,
            session_key=request.session_key,
        )
    except CalendarViewError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AggregationError as e:
        logger.error("Calendar view failed", error=str(e), failed_accounts=e.failed_accounts)
        raise _aggregation_failed(e)

    result = view.aggregation
    log_sync_outcome(result.generation, len(result.events), result.failed_accounts, result.stale)
    return CalendarViewResponse(
        timezone=view.timezone,
        pixels_per_hour=request.pixels_per_hour or settings.PIXELS_PER_HOUR,
        days=[DayLayoutResponse(**day.to_dict()) for day in view.days],
        events=[CalendarEventResponse(**entry.to_dict()) for entry in result.all_entries()],
        failed_accounts=result.failed_accounts,
        sync_error=result.sync_error_message,
        generation=result.generation,
        session_key=result.session_key,
        stale=result.stale,
    )


@router.post("/sticky", response_model=StickyResponse)
async def position_sticky_markers(request: StickyRequest):
    """Recompute sticky marker offsets for the current scroll frame."""
    placements = place_sticky_items(
        [item.to_domain() for item in request.items],
        request.viewport.to_domain(),
        pixels_per_hour=request.pixels_per_hour,
        sticky_margin=request.sticky_margin,
    )
    return StickyResponse(
        placements=[StickyPlacementResponse(**placement.to_dict()) for placement in placements]
    )

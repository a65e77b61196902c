"""
Google Calendar API transport used by the aggregator.
Handles Calendar API client initialization, paginated event listing,
calendar listing and single-event lookups.
Low-level Calendar API client: returns raw provider records.
"""

import asyncio
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.calendar_domain import CALENDAR_PRIMARY

logger = get_logger(__name__)

# Request timeouts and retry configuration
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
MAX_PAGES = 20


class GoogleCalendarError(Exception):
    """Custom exception for Google Calendar API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


class GoogleCalendarService:
    """
    Transport for Google Calendar API reads.

    Handles calendar listing, event listing with pagination and single event
    lookups with proper error handling and retry logic.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        self.base_url = (base_url or settings.GOOGLE_CALENDAR_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.CALENDAR_REQUEST_TIMEOUT
        self.max_retries = max_retries or settings.CALENDAR_MAX_RETRIES
        self._client = self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        """Create async HTTP client for Calendar API."""
        timeout = httpx.Timeout(self.timeout)
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < self.max_retries:
                    backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                    logger.debug(
                        "Calendar API retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    raise
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Calendar API request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError("Calendar API retry loop exhausted")

    def _get_auth_headers(self, access_token: str) -> dict:
        """Get authorization headers for Calendar API requests."""
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    def _calendar_url(self, calendar_id: str) -> str:
        return f"{self.base_url}/calendars/{quote(calendar_id, safe='')}"

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Handle and validate Calendar API response.

        Args:
            response: HTTP response from Calendar API
            operation: Operation name for logging

        Returns:
            dict: Parsed response data

        Raises:
            GoogleCalendarError: If response contains errors
        """
        logger.debug(
            f"Calendar API {operation} response",
            status_code=response.status_code,
            response_size=len(response.text) if response.text else 0,
        )

        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Calendar API {operation} response", error=str(e))
                raise GoogleCalendarError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            logger.error(
                f"Calendar API {operation} failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise GoogleCalendarError(
                f"Calendar API error (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from None

        error_info = error_data.get("error", {}) if isinstance(error_data, dict) else {}
        if not isinstance(error_info, dict):
            error_info = {"message": str(error_info)}
        error_code = str(error_info.get("code", response.status_code))
        error_message = error_info.get("message", "Unknown Calendar API error")

        logger.error(
            f"Calendar API {operation} failed",
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )

        raise GoogleCalendarError(
            self._map_calendar_error(error_code, error_message),
            error_code=error_code,
            status_code=response.status_code,
            response_data=error_data,
        )

    def _map_calendar_error(self, error_code: str, error_message: str) -> str:
        """Map Calendar API error codes to user-friendly messages."""
        error_mappings = {
            "403": "Calendar access denied. Please check permissions.",
            "404": "Calendar or event not found.",
            "400": "Invalid calendar request format.",
            "401": "Calendar authorization expired. Please reconnect.",
            "410": "Calendar sync window expired.",
            "429": "Too many calendar requests. Please try again later.",
            "500": "Google Calendar service temporarily unavailable.",
        }

        return error_mappings.get(error_code, f"Calendar error: {error_message}")

    async def list_calendars(self, access_token: str) -> list[dict[str, Any]]:
        """
        List all calendars accessible to the account.

        Args:
            access_token: Valid OAuth access token

        Returns:
            List of raw calendarList entries

        Raises:
            GoogleCalendarError: If listing calendars fails
        """
        try:
            url = f"{self.base_url}/users/me/calendarList"
            headers = self._get_auth_headers(access_token)

            logger.info("Listing account calendars")

            response = await self._request_with_retry("GET", url, headers=headers)
            data = self._handle_api_response(response, "list_calendars")

            items = data.get("items", [])
            logger.info("Calendars listed successfully", calendar_count=len(items))
            return items

        except GoogleCalendarError:
            raise
        except Exception as e:
            logger.error("Unexpected error listing calendars", error=str(e))
            raise GoogleCalendarError(f"Failed to list calendars: {e}") from e

    async def list_events(
        self,
        access_token: str,
        calendar_id: str = CALENDAR_PRIMARY,
        time_min: datetime | None = None,
        time_max: datetime | None = None,
        max_results: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        List event instances from a calendar, following pagination.

        Recurring series are expanded into instances (singleEvents=true);
        instances reference their master through ``recurringEventId``.

        Args:
            access_token: Valid OAuth access token
            calendar_id: Calendar ID (default: primary)
            time_min: Inclusive lower bound on event end
            time_max: Exclusive upper bound on event start
            max_results: Page size

        Returns:
            List of raw event records

        Raises:
            GoogleCalendarError: If listing events fails
        """
        try:
            url = f"{self._calendar_url(calendar_id)}/events"
            headers = self._get_auth_headers(access_token)

            params: dict[str, Any] = {
                "maxResults": max_results or settings.CALENDAR_MAX_RESULTS,
                "singleEvents": "true",
                "orderBy": "startTime",
            }
            if time_min:
                params["timeMin"] = time_min.isoformat()
            if time_max:
                params["timeMax"] = time_max.isoformat()

            logger.info(
                "Listing calendar events",
                calendar_id=calendar_id,
                time_min=params.get("timeMin"),
                time_max=params.get("timeMax"),
            )

            items: list[dict[str, Any]] = []
            for _ in range(MAX_PAGES):
                response = await self._request_with_retry(
                    "GET", url, headers=headers, params=params
                )
                data = self._handle_api_response(response, "list_events")
                items.extend(data.get("items", []))

                page_token = data.get("nextPageToken")
                if not page_token:
                    break
                params["pageToken"] = page_token
            else:
                logger.warning(
                    "Event listing truncated at page limit",
                    calendar_id=calendar_id,
                    max_pages=MAX_PAGES,
                )

            logger.info(
                "Events listed successfully",
                calendar_id=calendar_id,
                event_count=len(items),
            )
            return items

        except GoogleCalendarError:
            raise
        except Exception as e:
            logger.error("Unexpected error listing events", calendar_id=calendar_id, error=str(e))
            raise GoogleCalendarError(f"Failed to list events: {e}") from e

    async def get_event(
        self, access_token: str, event_id: str, calendar_id: str = CALENDAR_PRIMARY
    ) -> dict[str, Any]:
        """
        Get a specific event by ID (used to look up recurring masters).

        Args:
            access_token: Valid OAuth access token
            event_id: Event ID
            calendar_id: Calendar ID (default: primary)

        Returns:
            Raw event record

        Raises:
            GoogleCalendarError: If getting event fails
        """
        try:
            url = f"{self._calendar_url(calendar_id)}/events/{quote(event_id, safe='')}"
            headers = self._get_auth_headers(access_token)

            logger.info("Getting calendar event", event_id=event_id, calendar_id=calendar_id)

            response = await self._request_with_retry("GET", url, headers=headers)
            data = self._handle_api_response(response, "get_event")

            logger.info("Event retrieved successfully", event_id=event_id)
            return data

        except GoogleCalendarError:
            raise
        except Exception as e:
            logger.error("Unexpected error getting event", event_id=event_id, error=str(e))
            raise GoogleCalendarError(f"Failed to get event: {e}") from e

    async def health_check(self) -> dict[str, Any]:
        """
        Check Google Calendar transport health.

        Returns:
            Dict: Health status and configuration
        """
        health_data: dict[str, Any] = {
            "healthy": True,
            "service": "google_calendar",
            "api_base_url": self.base_url,
            "request_timeout": self.timeout,
            "max_retries": self.max_retries,
            "supported_operations": ["list_calendars", "list_events", "get_event"],
        }

        try:
            response = await self._client.request("HEAD", self.base_url, timeout=5.0)
            health_data["api_connectivity"] = (
                "ok"
                if response.status_code in [200, 401, 403, 404]
                else f"error_{response.status_code}"
            )
        except httpx.RequestError as e:
            health_data["api_connectivity"] = f"error_{type(e).__name__}"
            health_data["healthy"] = False

        return health_data


# Singleton instance for application use
google_calendar_service = GoogleCalendarService()

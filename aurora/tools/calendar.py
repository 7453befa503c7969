"""Calendar tools."""

from datetime import UTC, datetime, time, timedelta

from pydantic import BaseModel, Field

from aurora.services.calendar import CalendarEvent, InMemoryCalendarService, combine_utc
from aurora.tools.base import ToolDefinition, ToolDomain, ToolResult, ToolSuccess, not_found, parse_date

DEFAULT_START_TIME = time(9, 0)


def parse_time(value: str | None) -> time | None:
    """Parse HH:MM (24-hour), returning None for blank or malformed input."""
    if not value:
        return None
    try:
        return time.fromisoformat(value)
    except ValueError:
        return None


class ListEventsInput(BaseModel):
    start_date: str | None = Field(default=None, description="Start date (YYYY-MM-DD)")
    end_date: str | None = Field(default=None, description="End date (YYYY-MM-DD)")
    limit: int | None = Field(default=None, ge=1, description="Number of upcoming events to return")


class UpcomingEventsInput(BaseModel):
    limit: int = Field(default=10, ge=1, description="Number of events to return")


class EventIdInput(BaseModel):
    event_id: int = Field(..., description="The event ID")


class CreateEventInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, description="Event title")
    description: str | None = Field(default=None, description="Event description")
    start_date: str = Field(..., description="Start date (YYYY-MM-DD)")
    start_time: str | None = Field(default=None, description="Start time (HH:MM, 24-hour format)")
    end_date: str | None = Field(default=None, description="End date (optional)")
    end_time: str | None = Field(default=None, description="End time (optional, HH:MM)")
    all_day: bool = Field(default=False, description="Is this an all-day event?")
    location: str | None = Field(default=None, description="Event location")
    color: str = Field(default="#3b82f6", pattern=r"^#[0-9a-fA-F]{6}$", description="Event color (hex code)")


class UpdateEventInput(BaseModel):
    event_id: int = Field(..., description="The event to update")
    title: str | None = Field(default=None, min_length=1, max_length=255, description="New title")
    description: str | None = Field(default=None, description="New description")
    start_date: str | None = Field(default=None, description="New start date")
    start_time: str | None = Field(default=None, description="New start time")
    location: str | None = Field(default=None, description="New location")


def _event_summary(event: CalendarEvent) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "date": event.start_at.date(),
        "time": event.start_at.strftime("%H:%M"),
        "all_day": event.all_day,
        "location": event.location,
    }


def _events_payload(events: list[CalendarEvent]) -> dict:
    return {"count": len(events), "events": [_event_summary(e) for e in events]}


def create_calendar_tools(calendar: InMemoryCalendarService) -> list[ToolDefinition]:
    async def list_calendar_events(params: ListEventsInput) -> ToolResult:
        if params.start_date and params.end_date:
            start = parse_date(params.start_date) or datetime.now(UTC).date()
            end = parse_date(params.end_date) or start + timedelta(days=30)
            events = await calendar.events_for_range(start, end)
        else:
            events = await calendar.upcoming_events(params.limit or 10)
        return ToolSuccess(_events_payload(events))

    async def list_upcoming_events(params: UpcomingEventsInput) -> ToolResult:
        return ToolSuccess(_events_payload(await calendar.upcoming_events(params.limit)))

    async def get_calendar_event(params: EventIdInput) -> ToolResult:
        event = await calendar.get_event(params.event_id)
        if event is None:
            return not_found("Event", params.event_id)
        return ToolSuccess(
            {
                "id": event.id,
                "title": event.title,
                "description": event.description,
                "start_at": event.start_at,
                "end_at": event.end_at,
                "all_day": event.all_day,
                "location": event.location,
                "color": event.color,
            }
        )

    async def create_calendar_event(params: CreateEventInput) -> ToolResult:
        start_date = parse_date(params.start_date) or datetime.now(UTC).date()
        start_at = combine_utc(start_date, parse_time(params.start_time) or DEFAULT_START_TIME)

        end_at = None
        end_time = parse_time(params.end_time)
        if end_time is not None:
            end_at = combine_utc(parse_date(params.end_date) or start_date, end_time)

        event = await calendar.create_event(
            params.title,
            start_at,
            end_at=end_at,
            description=params.description,
            all_day=params.all_day,
            location=params.location,
            color=params.color,
        )
        return ToolSuccess(
            {
                "id": event.id,
                "title": event.title,
                "message": f"Event '{event.title}' created for {start_date.strftime('%B %d, %Y')}",
            }
        )

    async def update_calendar_event(params: UpdateEventInput) -> ToolResult:
        event = await calendar.get_event(params.event_id)
        if event is None:
            return not_found("Event", params.event_id)

        changes = params.model_dump(include={"title", "description", "location"}, exclude_none=True)
        if params.start_date:
            start_date = parse_date(params.start_date) or datetime.now(UTC).date()
            if params.start_time:
                start_time = parse_time(params.start_time) or DEFAULT_START_TIME
            else:
                start_time = event.start_at.time()
            changes["start_at"] = combine_utc(start_date, start_time)

        await calendar.update_event(event.id, **changes)
        return ToolSuccess({"id": event.id, "message": "Event updated"})

    async def delete_calendar_event(params: EventIdInput) -> ToolResult:
        event = await calendar.delete_event(params.event_id)
        if event is None:
            return not_found("Event", params.event_id)
        return ToolSuccess({"message": f"Event '{event.title}' deleted"})

    domain = ToolDomain.CALENDAR
    return [
        ToolDefinition(
            "list_calendar_events",
            "List calendar events for a date range or upcoming events",
            ListEventsInput,
            list_calendar_events,
            domain,
        ),
        ToolDefinition(
            "list_upcoming_events", "List upcoming calendar events", UpcomingEventsInput, list_upcoming_events, domain
        ),
        ToolDefinition(
            "get_calendar_event", "Get details of a specific calendar event", EventIdInput, get_calendar_event, domain
        ),
        ToolDefinition(
            "create_calendar_event",
            "Create a new calendar event",
            CreateEventInput,
            create_calendar_event,
            domain,
            mutates=True,
        ),
        ToolDefinition(
            "update_calendar_event",
            "Update an existing calendar event",
            UpdateEventInput,
            update_calendar_event,
            domain,
            mutates=True,
        ),
        ToolDefinition(
            "delete_calendar_event",
            "Delete a calendar event. This action requires confirmation.",
            EventIdInput,
            delete_calendar_event,
            domain,
            mutates=True,
            destructive=True,
        ),
    ]

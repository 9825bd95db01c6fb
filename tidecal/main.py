import logging
import os
import uuid
from dataclasses import asdict
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import Response
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from .config import Settings
from .coverage import MAX_COVERAGE
from .errors import UpstreamFailure
from .events import CalendarEvent
from .providers import load_provider
from .sync import sync_calendar_file

settings = Settings.from_env()
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        return response


app = FastAPI(
    title="Tide Calendar API",
    description="High/low tide events as an incrementally synchronized iCalendar feed",
    version="1.0.0",
)

# Set up rate limiter
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(SecurityHeadersMiddleware)

provider = load_provider(settings)


def _event_to_dict(event: CalendarEvent) -> dict:
    start = event.local_start()
    end = event.end.astimezone(start.tzinfo) if event.end is not None else None
    return {
        "id": event.id,
        "summary": event.summary,
        "start": start.isoformat(),
        "end": end.isoformat() if end is not None else None,
        "description": event.description,
        "location": event.location,
        "timezone": event.time_zone_id,
    }


def _parse_date(date: Optional[str], time_zone_id: Optional[str]) -> Optional[datetime]:
    if not date:
        return None
    try:
        start_date = datetime.fromisoformat(date)
    except ValueError:
        raise HTTPException(400, "Invalid date format. Please use ISO 8601 format (YYYY-MM-DD)")
    # Use the date portion in the station zone (ignore time/tz from input)
    tz = ZoneInfo(time_zone_id or "UTC")
    return datetime(start_date.year, start_date.month, start_date.day, tzinfo=tz)


@app.get("/api/v1/tides")
async def get_tides(
    days: int = Query(1, ge=1, le=MAX_COVERAGE, description="Number of days to predict"),
    date: Optional[str] = Query(
        None,
        description="Optional start date (YYYY-MM-DD). If not provided, current date is used.",
    ),
):
    """
    Get high/low tide events for the configured station.

    Events start at local midnight of the requested date and use the same
    ids, summaries and zone as the calendar feed.
    """
    try:
        start_date = _parse_date(date, provider.time_zone_id)
        events = provider.get_events(days, now=start_date)
        return [_event_to_dict(e) for e in events]
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except UpstreamFailure as e:
        raise HTTPException(502, detail=str(e))
    except Exception:
        error_id = uuid.uuid4().hex[:8]
        logger.exception(f"Error {error_id} in get_tides")
        raise HTTPException(500, detail=f"Internal error (ref: {error_id})")


@app.get("/api/v1/calendar.ics")
async def get_calendar():
    """Serve the persisted calendar file."""
    if not os.path.exists(settings.calendar_path):
        raise HTTPException(404, detail="Calendar has not been generated yet")
    with open(settings.calendar_path, "r", encoding="utf-8") as f:
        content = f.read()
    return Response(content=content, media_type="text/calendar; charset=utf-8")


@app.post("/api/v1/calendar/sync")
@limiter.limit("5/minute")
async def sync_calendar(
    request: Request,
    days: Optional[int] = Query(None, ge=1, le=365, description="Days requested (defaults to TIDECAL_DAYS)"),
    replace: bool = Query(False, description="Discard existing events instead of merging"),
):
    """
    Top up the persisted calendar with new tide events.

    Existing events are kept; only events with new ids are added, unless
    `replace` is set. Rate limited to 5 requests per minute per IP.
    """
    try:
        result = sync_calendar_file(
            settings.calendar_path,
            provider,
            days or settings.days,
            replace_existing=replace,
            calendar_name=settings.calendar_name,
        )
        return {
            "path": result.path,
            "coverage": asdict(result.window),
            "existing": result.existing,
            "added": result.added,
            "total": result.total,
        }
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except UpstreamFailure as e:
        raise HTTPException(502, detail=str(e))
    except Exception:
        error_id = uuid.uuid4().hex[:8]
        logger.exception(f"Error {error_id} in sync_calendar")
        raise HTTPException(500, detail=f"Internal error (ref: {error_id})")


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "provider": provider.name,
        "station": provider.station.name,
        "timezone": provider.time_zone_id,
    }

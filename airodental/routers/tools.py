# airodental/routers/tools.py
"""
Tool endpoints called cross-origin by the voice assistant platform.

Every response, success or failure, uses the platform's envelope
``{"results": [{"toolCallId", "result" | "error"}]}``.
"""
from __future__ import annotations
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..deps import get_availability_service, get_booking_service, get_policy
from ..exceptions import (
    ConfigurationFault,
    DependencyUnavailable,
    DuplicatePatient,
    PolicyViolation,
    SchedulingError,
    SlotConflict,
    ValidationError,
)
from ..schemas import ToolResponse, ToolResult
from ..services.availability import AvailabilityService, build_window
from ..services.booking import BookingService
from ..services.calendar_policy import CalendarPolicy
from ..services.formatting import format_availability
from ..services.toolcalls import (
    BOOK_APPOINTMENT_NAMES,
    CHECK_AVAILABILITY_NAMES,
    UNKNOWN_CALL_ID,
    MalformedToolCall,
    ToolCallRequest,
    availability_params,
    booking_params,
    normalize_tool_call,
    require_function,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/voice", tags=["voice-tools"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

# Most specific class first
_ERROR_STATUS: list[tuple[type[SchedulingError], int]] = [
    (ValidationError, 400),
    (PolicyViolation, 200),  # recoverable: the agent reads the reason back to the caller
    (SlotConflict, 409),
    (DuplicatePatient, 409),
    (DependencyUnavailable, 503),
    (ConfigurationFault, 500),
]

GENERIC_ERROR = "Something went wrong on our side. Please try again."


# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────
def tool_response(
    tool_call_id: str,
    *,
    result: Optional[str] = None,
    error: Optional[str] = None,
    status_code: int = 200,
) -> JSONResponse:
    payload = ToolResponse(results=[ToolResult(tool_call_id=tool_call_id, result=result, error=error)])
    return JSONResponse(
        payload.model_dump(by_alias=True, exclude_none=True),
        status_code=status_code,
        headers=CORS_HEADERS,
    )


def error_response(tool_call_id: str, exc: Exception) -> JSONResponse:
    """Map any exception to exactly one error kind; internals only go to the log."""
    if isinstance(exc, SchedulingError):
        status_code = next(code for kind, code in _ERROR_STATUS + [(SchedulingError, 500)] if isinstance(exc, kind))
        if isinstance(exc, ConfigurationFault):
            logger.critical("Configuration fault on tool call %s: %s", tool_call_id, exc)
        elif isinstance(exc, DependencyUnavailable):
            logger.error("Dependency unavailable on tool call %s: %s", tool_call_id, exc, exc_info=exc)
        else:
            logger.info("Tool call %s rejected (%s): %s", tool_call_id, type(exc).__name__, exc)
        return tool_response(tool_call_id, error=exc.public_message, status_code=status_code)

    logger.error("Unexpected error on tool call %s", tool_call_id, exc_info=exc)
    return tool_response(tool_call_id, error=GENERIC_ERROR, status_code=500)


async def _read_tool_call(request: Request, accepted: frozenset[str]) -> ToolCallRequest:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedToolCall("Request body is not valid JSON.") from e
    call = normalize_tool_call(body)
    require_function(call, accepted)
    return call


# ──────────────────────────────────────────────────────────────────────────────
# check availability
# ──────────────────────────────────────────────────────────────────────────────
def _check_availability(call: ToolCallRequest, service: AvailabilityService, policy: CalendarPolicy) -> str:
    start_value, end_value = availability_params(call)
    window = build_window(start_value, end_value, policy)
    return format_availability(service.check(window), policy.tz)


@router.post("/check-availability")
async def check_availability(
    request: Request,
    service: AvailabilityService = Depends(get_availability_service),
    policy: CalendarPolicy = Depends(get_policy),
):
    tool_call_id = UNKNOWN_CALL_ID
    try:
        call = await _read_tool_call(request, CHECK_AVAILABILITY_NAMES)
        tool_call_id = call.tool_call_id
        message = await run_in_threadpool(_check_availability, call, service, policy)
    except MalformedToolCall as e:
        return error_response(e.tool_call_id, e)
    except Exception as e:
        return error_response(tool_call_id, e)
    logger.info("check-availability %s → %s", tool_call_id, message)
    return tool_response(tool_call_id, result=message)


# ──────────────────────────────────────────────────────────────────────────────
# book appointment
# ──────────────────────────────────────────────────────────────────────────────
def _book_appointment(call: ToolCallRequest, service: BookingService, policy: CalendarPolicy) -> str:
    booking = booking_params(call, policy.tz)
    return service.book(booking).message


@router.post("/book-appointment")
async def book_appointment(
    request: Request,
    service: BookingService = Depends(get_booking_service),
    policy: CalendarPolicy = Depends(get_policy),
):
    tool_call_id = UNKNOWN_CALL_ID
    try:
        call = await _read_tool_call(request, BOOK_APPOINTMENT_NAMES)
        tool_call_id = call.tool_call_id
        message = await run_in_threadpool(_book_appointment, call, service, policy)
    except MalformedToolCall as e:
        return error_response(e.tool_call_id, e)
    except Exception as e:
        return error_response(tool_call_id, e)
    logger.info("book-appointment %s → %s", tool_call_id, message)
    return tool_response(tool_call_id, result=message)


# ──────────────────────────────────────────────────────────────────────────────
# CORS preflight
# ──────────────────────────────────────────────────────────────────────────────
@router.options("/check-availability")
@router.options("/book-appointment")
def preflight() -> Response:
    return Response(status_code=204, headers=CORS_HEADERS)

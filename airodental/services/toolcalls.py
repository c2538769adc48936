# airodental/services/toolcalls.py
"""
Normalisation of inbound tool-call envelopes.

The voice platform (and people testing by hand) send the same call in several
shapes:

* ``{"message": {"toolCallList": [{"id", "function": {"name", "arguments"}}]}}``
* ``{"message": {"toolCalls": [...]}}`` or a top-level ``{"toolCalls": [...]}``
* ``{"message": {"functionCall": {"name", "parameters"}, "call": {"id"}}}``
* ``{"tool_call_id", "parameters"}`` / ``{"toolCallId", "arguments"}``
* the bare parameters as the JSON body

``arguments``/``parameters`` may be an object or a JSON-encoded string.
Everything past this module only sees ``ToolCallRequest``.
"""
from __future__ import annotations
import json
import logging
from datetime import tzinfo
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict

from ..exceptions import ValidationError
from .booking import BookingRequest
from .timeutils import parse_instant

logger = logging.getLogger(__name__)

DIRECT_CALL_ID = "direct-call"
UNKNOWN_CALL_ID = "unknown-tool-call-id"

CHECK_AVAILABILITY_NAMES = frozenset({"check_availability", "checkAvailability"})
BOOK_APPOINTMENT_NAMES = frozenset({"bookAppointment", "book_appointment"})


class ToolCallRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_call_id: str
    function_name: Optional[str] = None
    arguments: Dict[str, Any] = {}


class MalformedToolCall(ValidationError):
    """Envelope could not be understood; carries whatever call id was found."""

    def __init__(self, message: str, tool_call_id: str = UNKNOWN_CALL_ID) -> None:
        self.tool_call_id = tool_call_id
        super().__init__(message)


def _first_call(calls: Any) -> Optional[Dict[str, Any]]:
    if isinstance(calls, list) and calls and isinstance(calls[0], dict):
        return calls[0]
    return None


def _parse_arguments(raw: Any, tool_call_id: str) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            raise MalformedToolCall(f"Failed to parse function arguments: {e}", tool_call_id) from e
    if not isinstance(raw, dict):
        raise MalformedToolCall("Function arguments must be a JSON object.", tool_call_id)
    return raw


def normalize_tool_call(body: Any) -> ToolCallRequest:
    """Collapse every supported envelope shape into one ``ToolCallRequest``."""
    if not isinstance(body, dict):
        raise MalformedToolCall("Request body must be a JSON object.")

    message = body.get("message") if isinstance(body.get("message"), dict) else {}
    call = (
        _first_call(message.get("toolCallList"))
        or _first_call(message.get("toolCalls"))
        or _first_call(body.get("toolCalls"))
    )

    if call is not None:
        fn = call.get("function") if isinstance(call.get("function"), dict) else {}
        tool_call_id = str(call.get("id") or UNKNOWN_CALL_ID)
        name, raw = fn.get("name"), fn.get("arguments")
    elif isinstance(message.get("functionCall"), dict):
        # legacy envelope: the id lives on the call, not the function
        fc = message["functionCall"]
        call_info = message.get("call") if isinstance(message.get("call"), dict) else {}
        tool_call_id = str(call_info.get("id") or UNKNOWN_CALL_ID)
        name, raw = fc.get("name"), fc.get("parameters")
    elif body.get("tool_call_id"):
        tool_call_id = str(body["tool_call_id"])
        name, raw = body.get("name"), body.get("parameters")
    elif body.get("toolCallId"):
        tool_call_id = str(body["toolCallId"])
        name, raw = body.get("name"), body.get("arguments")
    else:
        tool_call_id = DIRECT_CALL_ID
        name = None
        raw = body.get("arguments") if "arguments" in body else body

    request = ToolCallRequest(
        tool_call_id=tool_call_id,
        function_name=name,
        arguments=_parse_arguments(raw, tool_call_id),
    )
    logger.debug("Normalised tool call id=%s function=%s", request.tool_call_id, request.function_name)
    return request


def require_function(request: ToolCallRequest, accepted: Iterable[str]) -> None:
    """Reject calls explicitly addressed to another function."""
    if request.function_name is not None and request.function_name not in accepted:
        raise MalformedToolCall(f"Invalid function name: {request.function_name}", request.tool_call_id)


def _first_str(args: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = args.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def availability_params(request: ToolCallRequest) -> tuple[str, str]:
    """(startDate, endDate), accepting the older dateFrom/dateTo names."""
    args = request.arguments
    return _first_str(args, "startDate", "dateFrom"), _first_str(args, "endDate", "dateTo")


def booking_params(request: ToolCallRequest, tz: tzinfo) -> BookingRequest:
    """Parse ``start`` here; name/email checks belong to the booking service."""
    args = request.arguments
    start = _first_str(args, "start")
    if not start:
        raise MalformedToolCall("Missing required parameter: start.", request.tool_call_id)
    try:
        start_at = parse_instant(start, tz)
    except ValueError as e:
        raise MalformedToolCall(
            f"Invalid date format: {start}. Please use ISO 8601 format.", request.tool_call_id
        ) from e
    sms = _first_str(args, "smsReminderNumber") or None
    return BookingRequest(
        start_at=start_at,
        name=_first_str(args, "name"),
        email=_first_str(args, "email"),
        sms_reminder_number=sms,
    )

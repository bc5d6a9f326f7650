import re
from datetime import datetime, timezone

from app.mappers.outcome import Outcome
from app.schemas.convoso import CanonicalEvent, ConvosoLogEntry

FALLBACK_NOTE = "No Agent Note - Convoso call logged automatically (Call Completed)."
DIRECTION_MISSING_MARKER = "[Direction missing]"

INCOMING = "Incoming"
OUTGOING = "Outgoing"

_CALL_TYPE_DIRECTIONS = {
    "INBOUND": INCOMING,
    "INCOMING": INCOMING,
    "IN": INCOMING,
    "OUTBOUND": OUTGOING,
    "OUTGOING": OUTGOING,
    "OUT": OUTGOING,
    "MANUAL": OUTGOING,
}

_OUTBOUND_HINT = re.compile(r"\b(outbound|outgoing)\b", re.IGNORECASE)
_INBOUND_HINT = re.compile(r"\b(inbound|incoming)\b", re.IGNORECASE)


def direction_from_call_type(call_type: str | None) -> str | None:
    """Map a Convoso call type to Forth's call_type, or None when unknown."""
    return _CALL_TYPE_DIRECTIONS.get(str(call_type or "").strip().upper())


def resolve_direction(
    event: CanonicalEvent, log_entry: ConvosoLogEntry | None = None
) -> str | None:
    """Explicit call types first (log, webhook call_type, webhook direction),
    then a free-text hint in the webhook notes. None means indeterminate.
    """
    explicit = [
        log_entry.call_type if log_entry else None,
        event.call_type,
        event.direction,
    ]
    for candidate in explicit:
        direction = direction_from_call_type(candidate)
        if direction:
            return direction

    notes = event.notes or ""
    outbound = bool(_OUTBOUND_HINT.search(notes))
    inbound = bool(_INBOUND_HINT.search(notes))
    if outbound and not inbound:
        return OUTGOING
    if inbound and not outbound:
        return INCOMING
    return None


def format_duration(seconds: int) -> str:
    seconds = max(int(seconds), 0)
    hh, rem = divmod(seconds, 3600)
    mm, ss = divmod(rem, 60)
    return f"{hh:02d}:{mm:02d}:{ss:02d}"


def format_forth_time(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def effective_created_at(
    event: CanonicalEvent,
    log_entry: ConvosoLogEntry | None,
    received_at: datetime,
) -> str:
    if event.created_at or event.call_end_time:
        return event.created_at or event.call_end_time
    if log_entry and log_entry.call_date:
        return log_entry.call_date
    return format_forth_time(received_at)


def effective_duration(event: CanonicalEvent, log_entry: ConvosoLogEntry | None) -> int:
    if log_entry and log_entry.call_length:
        return log_entry.call_length
    return event.duration_seconds


def build_call_notes(
    event: CanonicalEvent,
    log_entry: ConvosoLogEntry | None,
    direction: str | None,
) -> str:
    base = ""
    if log_entry:
        base = (log_entry.agent_comment or "").strip()
    if not base:
        base = (event.notes or "").strip()
    if not base:
        base = FALLBACK_NOTE

    if log_entry is None:
        return base

    parts = [
        base,
        f"Direction: {direction or 'UNKNOWN'}",
        f"ConvosoLogID:{log_entry.id}",
        f"Status:{(log_entry.status_name or '').strip()}",
        f"Term:{(log_entry.term_reason or '').strip()}",
        f"Len:{log_entry.call_length}s",
        f"Attempt:{log_entry.attempt}",
    ]
    return " | ".join(parts)


def build_disposition_notes(label: str, disposition: str, phone_digits: str) -> str:
    return f"Convoso - {label}: {disposition} | phone={phone_digits}"


def build_direction_missing_note(notes: str, outcome: Outcome, duration: str) -> str:
    """Content for the contact note written when no call record can be created."""
    return " | ".join(
        [
            DIRECTION_MISSING_MARKER,
            notes,
            f"Result: {outcome.result_label}",
            f"Disposition: {int(outcome.disposition)}",
            f"Duration: {duration}",
        ]
    )

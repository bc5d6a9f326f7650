import json
import re
from urllib.parse import parse_qsl

from app.mappers.phone import normalize_phone, to_e164
from app.schemas.convoso import CanonicalEvent, InputShape

PHONE_ALIASES = ("phone_number", "phone", "primary_phone", "caller_id", "lead_phone")
DISPOSITION_ALIASES = ("disposition", "disposition_name")
CREATED_AT_ALIASES = ("created_at",)
END_TIME_ALIASES = ("call_end_time",)
START_TIME_ALIASES = ("call_start_time", "start_time")
DURATION_ALIASES = ("duration", "duration_seconds", "call_length")
TALK_TIME_ALIASES = ("talk_time", "talk_seconds")
TERM_REASON_ALIASES = ("term_reason", "term_reason_id")
STATUS_ALIASES = ("status_name", "status")
NOTES_ALIASES = ("notes", "note", "comments", "call_notes", "agent_comment")

# params[field] or params[0][field], as posted by bracket-style form encoders
PARAMS_KEY = re.compile(r"^params\[(?:(?P<index>\d+)\]\[)?(?P<field>[^\]]+)\]$")


def _parse_form(text: str) -> dict:
    form: dict = {}
    nested: dict = {}
    rows: dict[int, dict] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        match = PARAMS_KEY.match(key)
        if match is None:
            form[key] = value
        elif match["index"] is not None:
            rows.setdefault(int(match["index"]), {})[match["field"]] = value
        else:
            nested[match["field"]] = value
    if rows:
        form["params"] = [rows[i] for i in sorted(rows)]
    elif nested:
        form["params"] = nested
    return form


def decode_body(raw: bytes, content_type: str = "") -> dict | list:
    """Decode an HTTP body as JSON or a urlencoded form. Never raises."""
    if not raw:
        return {}
    text = raw.decode("utf-8", errors="replace")
    if "application/x-www-form-urlencoded" in content_type.lower():
        return _parse_form(text)
    try:
        body = json.loads(text)
    except ValueError:
        # Convoso sometimes posts form bodies without a content type
        if "=" in text:
            return _parse_form(text)
        return {}
    return body if isinstance(body, (dict, list)) else {}


def _first_object(items: list) -> dict:
    if items and isinstance(items[0], dict):
        return items[0]
    return {}


def select_payload(body: dict | list) -> tuple[InputShape, dict]:
    """Pick the object that carries the event fields and tag how it was found."""
    params = body.get("params") if isinstance(body, dict) else None
    if isinstance(params, str):
        return InputShape.params_query, dict(parse_qsl(params, keep_blank_values=True))
    if isinstance(body, list):
        return InputShape.array, _first_object(body)
    if isinstance(params, list):
        return InputShape.params_array, _first_object(params)
    if isinstance(params, dict):
        return InputShape.params_object, params
    return InputShape.json, body if isinstance(body, dict) else {}


def _fold(key: str) -> str:
    return key.lower().replace("_", "").replace("-", "")


def _lookup(fields: dict, aliases: tuple[str, ...]):
    for alias in aliases:
        value = fields.get(_fold(alias))
        if value is not None and str(value).strip() != "":
            return value
    return None


def _text(fields: dict, *aliases: str) -> str | None:
    value = _lookup(fields, aliases)
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value).strip()


def _seconds(fields: dict, *aliases: str) -> int:
    value = _lookup(fields, aliases)
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def normalize_payload(body: dict | list) -> CanonicalEvent:
    shape, data = select_payload(body)
    fields = {_fold(str(k)): v for k, v in data.items()}

    raw_phone = _text(fields, *PHONE_ALIASES)
    digits = normalize_phone(raw_phone)

    return CanonicalEvent(
        phone_digits=digits,
        phone_e164=to_e164(digits, _text(fields, "phone_code"), raw_phone),
        call_type=_text(fields, "call_type"),
        direction=_text(fields, "direction"),
        disposition=_text(fields, *DISPOSITION_ALIASES),
        disposition_id=_text(fields, "disposition_id"),
        call_id=_text(fields, "call_id"),
        lead_id=_text(fields, "lead_id"),
        created_at=_text(fields, *CREATED_AT_ALIASES),
        call_end_time=_text(fields, *END_TIME_ALIASES),
        call_start_time=_text(fields, *START_TIME_ALIASES),
        duration_seconds=_seconds(fields, *DURATION_ALIASES),
        talk_seconds=_seconds(fields, *TALK_TIME_ALIASES),
        term_reason=_text(fields, *TERM_REASON_ALIASES),
        status_name=_text(fields, *STATUS_ALIASES),
        call_result=_text(fields, "call_result"),
        notes=_text(fields, *NOTES_ALIASES),
        recording_url=_text(fields, "recording_url"),
        input_shape=shape,
    )

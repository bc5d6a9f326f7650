import re
from collections.abc import Callable
from enum import IntEnum, StrEnum

from pydantic import BaseModel, ConfigDict

from app.schemas.convoso import CanonicalEvent, ConvosoLogEntry


class Disposition(IntEnum):
    """Forth call_disposition ids."""

    NO_ANSWER = 1
    CONNECTED = 2
    LEFT_MESSAGE = 3
    BUSY = 6


class OutcomeSource(StrEnum):
    default = "default"
    convoso = "convoso"


class Outcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    disposition: Disposition
    result_label: str
    source: OutcomeSource


class OutcomeSignals(BaseModel):
    term_reason: str = ""
    status_name: str = ""
    disposition: str = ""
    call_result: str = ""
    talk_seconds: int = 0

    @property
    def text(self) -> str:
        parts = [self.term_reason, self.status_name, self.disposition, self.call_result]
        return " ".join(p.strip() for p in parts).lower()

    @property
    def has_signal(self) -> bool:
        return self.talk_seconds > 0 or bool(self.text.strip())


_NO_ANSWER = re.compile(r"no answer|noanswer|\bna\b")
_BUSY = re.compile(r"busy")
_LEFT_MESSAGE = re.compile(r"left|vm|voicemail|message")

Rule = tuple[str, Callable[[OutcomeSignals], bool], Outcome]

# Evaluated top to bottom, first match wins. Talk time outranks any text.
OUTCOME_RULES: list[Rule] = [
    (
        "no_signal",
        lambda s: not s.has_signal,
        Outcome(disposition=Disposition.CONNECTED, result_label="Logged", source=OutcomeSource.default),
    ),
    (
        "talk_time",
        lambda s: s.talk_seconds > 0,
        Outcome(disposition=Disposition.CONNECTED, result_label="Connected", source=OutcomeSource.convoso),
    ),
    (
        "no_answer",
        lambda s: bool(_NO_ANSWER.search(s.text)),
        Outcome(disposition=Disposition.NO_ANSWER, result_label="No Answer", source=OutcomeSource.convoso),
    ),
    (
        "busy",
        lambda s: bool(_BUSY.search(s.text)),
        Outcome(disposition=Disposition.BUSY, result_label="Busy", source=OutcomeSource.convoso),
    ),
    (
        "left_message",
        lambda s: bool(_LEFT_MESSAGE.search(s.text)),
        Outcome(disposition=Disposition.LEFT_MESSAGE, result_label="Left Message", source=OutcomeSource.convoso),
    ),
    (
        "connected",
        lambda s: True,
        Outcome(disposition=Disposition.CONNECTED, result_label="Connected", source=OutcomeSource.convoso),
    ),
]


def classify_outcome(signals: OutcomeSignals) -> Outcome:
    for _name, matches, outcome in OUTCOME_RULES:
        if matches(signals):
            return outcome
    # unreachable, the last rule always matches
    return OUTCOME_RULES[-1][2]


def signals_for_event(
    event: CanonicalEvent, log_entry: ConvosoLogEntry | None = None
) -> OutcomeSignals:
    """Collect outcome signals, preferring Convoso's call log when it was found."""
    if log_entry is not None:
        return OutcomeSignals(
            term_reason=log_entry.term_reason or "",
            status_name=log_entry.status_name or "",
            disposition=event.disposition or "",
            call_result=event.call_result or "",
            talk_seconds=log_entry.call_length,
        )
    return OutcomeSignals(
        term_reason=event.term_reason or "",
        status_name=event.status_name or "",
        disposition=event.disposition or "",
        call_result=event.call_result or "",
        talk_seconds=event.talk_seconds,
    )

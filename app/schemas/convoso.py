from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class InputShape(StrEnum):
    json = "json"
    array = "array"
    params_array = "params_array"
    params_object = "params_object"
    params_query = "params_query"


class CanonicalEvent(BaseModel):
    """One inbound Convoso webhook, whatever shape it arrived in."""

    model_config = ConfigDict(frozen=True)

    phone_digits: str = ""
    phone_e164: str | None = None
    call_type: str | None = None
    direction: str | None = None
    disposition: str | None = None
    disposition_id: str | None = None
    call_id: str | None = None
    lead_id: str | None = None
    created_at: str | None = None
    call_end_time: str | None = None
    call_start_time: str | None = None
    duration_seconds: int = 0
    talk_seconds: int = 0
    term_reason: str | None = None
    status_name: str | None = None
    call_result: str | None = None
    notes: str | None = None
    recording_url: str | None = None
    input_shape: InputShape = InputShape.json


class ConvosoLogEntry(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    id: str = ""
    call_type: str | None = None
    agent_comment: str | None = None
    status_name: str | None = None
    term_reason: str | None = None
    call_length: int = Field(
        0, validation_alias=AliasChoices("call_length", "call_length_seconds")
    )
    call_date: str | None = Field(
        None, validation_alias=AliasChoices("call_date", "call_date_time")
    )
    recording_url: str | None = None
    attempt: int = 1

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, value):
        return "" if value is None else value

    @field_validator("call_length", mode="before")
    @classmethod
    def _seconds(cls, value):
        try:
            return max(int(float(value or 0)), 0)
        except (TypeError, ValueError, OverflowError):
            return 0

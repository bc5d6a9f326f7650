from pydantic import BaseModel, ConfigDict


class ForthContact(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    id: str
    first_name: str | None = None
    last_name: str | None = None


class ForthCallPayload(BaseModel):
    contactID: int | str
    created_at: str
    call_type: str
    call_disposition: int
    call_result: str | None = None
    notes: str
    duration: str
    event_id: int = 0
    recording_url: str | None = None


class ForthNotePayload(BaseModel):
    content: str
    created_at: str

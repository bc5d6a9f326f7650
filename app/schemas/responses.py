from pydantic import BaseModel


class WebhookResponse(BaseModel):
    ok: bool = True
    skipped: str | None = None
    deduped: bool | None = None
    created: bool | None = None
    record: str | None = None  # "call" | "note"
    forth: dict | None = None
    error: str | None = None

import logging
from datetime import datetime, timezone

from app.dedup import DispositionDedupGate
from app.exceptions.custom import InvalidPayloadError
from app.mappers.call_note_builder import (
    build_call_notes,
    build_direction_missing_note,
    build_disposition_notes,
    effective_created_at,
    effective_duration,
    format_duration,
    format_forth_time,
    resolve_direction,
)
from app.mappers.outcome import (
    Outcome,
    OutcomeSignals,
    classify_outcome,
    signals_for_event,
)
from app.mappers.phone import last4
from app.schemas.convoso import CanonicalEvent, ConvosoLogEntry
from app.schemas.forth import ForthCallPayload, ForthContact
from app.schemas.responses import WebhookResponse
from app.services.convoso import ConvosoService
from app.services.forth import ForthService

logger = logging.getLogger(__name__)

SKIP_NO_CONTACT = "No matching contact in Forth"
SKIP_BLANK_DISPOSITION = "Disposition blank"
SKIP_DUPLICATE = "Disposition already processed"


def _contact_ref(contact: ForthContact) -> int | str:
    return int(contact.id) if contact.id.isdigit() else contact.id


class ForwardingService:
    """Turns normalized Convoso events into Forth call (or note) records."""

    def __init__(
        self,
        forth: ForthService,
        convoso: ConvosoService,
        dedup: DispositionDedupGate,
    ):
        self._forth = forth
        self._convoso = convoso
        self._dedup = dedup

    async def handle_call_completed(self, event: CanonicalEvent) -> WebhookResponse:
        received_at = datetime.now(timezone.utc)
        phone = event.phone_digits
        logger.info(
            "[call-completed] parsed=%s phone_last4=%s", event.input_shape, last4(phone)
        )
        if not phone:
            raise InvalidPayloadError("Missing phone")

        log_entry = await self._convoso.find_call_log(phone)
        outcome = classify_outcome(signals_for_event(event, log_entry))
        logger.info(
            "[call-completed] call_result=%s (source=%s)", outcome.result_label, outcome.source
        )

        contact = await self._resolve_contact(phone)
        if contact is None:
            return WebhookResponse(skipped=SKIP_NO_CONTACT)

        direction = resolve_direction(event, log_entry)
        return await self._write(
            contact,
            event,
            log_entry,
            outcome,
            direction=direction,
            notes=build_call_notes(event, log_entry, direction),
            duration=format_duration(effective_duration(event, log_entry)),
            created_at=effective_created_at(event, log_entry, received_at),
        )

    async def handle_disposition(self, event: CanonicalEvent) -> WebhookResponse:
        """Forward only the first disposition a call receives."""
        received_at = datetime.now(timezone.utc)
        disposition = (event.disposition or "").strip()
        if not disposition:
            return WebhookResponse(skipped=SKIP_BLANK_DISPOSITION)

        key = DispositionDedupGate.dedupe_key(
            event.call_id,
            event.lead_id,
            event.call_start_time or event.created_at,
            received_at,
        )
        # claim() has no await inside; the gate closes before any Forth call
        if not self._dedup.claim(key, event.disposition_id):
            logger.info("[disposition] duplicate skipped key=%s", key)
            return WebhookResponse(skipped=SKIP_DUPLICATE, deduped=True)

        result = await self._forward_disposition(
            event, disposition, "Disposition", received_at
        )
        if result.skipped is None:
            result.created = True
        return result

    async def handle_disposition_set(self, event: CanonicalEvent) -> WebhookResponse:
        received_at = datetime.now(timezone.utc)
        disposition = (event.disposition or "").strip() or "Connected"
        return await self._forward_disposition(
            event, disposition, "Disposition Set", received_at
        )

    async def _forward_disposition(
        self,
        event: CanonicalEvent,
        disposition: str,
        label: str,
        received_at: datetime,
    ) -> WebhookResponse:
        phone = event.phone_digits
        if not phone:
            raise InvalidPayloadError("Missing phone")

        contact = await self._resolve_contact(phone)
        if contact is None:
            return WebhookResponse(skipped=SKIP_NO_CONTACT)

        outcome = classify_outcome(OutcomeSignals(disposition=disposition))
        return await self._write(
            contact,
            event,
            None,
            outcome,
            direction=resolve_direction(event),
            notes=build_disposition_notes(label, disposition, phone),
            duration=format_duration(0),
            created_at=event.created_at or event.call_end_time or format_forth_time(received_at),
        )

    async def _resolve_contact(self, phone: str) -> ForthContact | None:
        contacts = await self._forth.search_contacts_by_phone(phone)
        if not contacts:
            logger.info("No Forth contact for phone_last4=%s, skipping", last4(phone))
            return None
        return contacts[0]

    async def _write(
        self,
        contact: ForthContact,
        event: CanonicalEvent,
        log_entry: ConvosoLogEntry | None,
        outcome: Outcome,
        *,
        direction: str | None,
        notes: str,
        duration: str,
        created_at: str,
    ) -> WebhookResponse:
        if direction is None:
            # Forth rejects calls without a call_type; keep the details as a note
            logger.warning(
                "Direction unknown for contact %s, writing a note instead of a call",
                contact.id,
            )
            content = build_direction_missing_note(notes, outcome, duration)
            body = await self._forth.create_note(contact.id, content, created_at)
            return WebhookResponse(record="note", forth=body)

        recording_url = event.recording_url or (log_entry.recording_url if log_entry else None)
        payload = ForthCallPayload(
            contactID=_contact_ref(contact),
            created_at=created_at,
            call_type=direction,
            call_disposition=int(outcome.disposition),
            call_result=outcome.result_label,
            notes=notes,
            duration=duration,
            recording_url=recording_url or None,
        )
        body = await self._forth.create_call(payload)
        return WebhookResponse(record="call", forth=body)

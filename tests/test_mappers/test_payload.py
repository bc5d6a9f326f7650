import json

from app.mappers.payload import decode_body, normalize_payload, select_payload
from app.schemas.convoso import InputShape


def test_plain_json_object():
    event = normalize_payload(
        {
            "phone_number": "1-(415) 555-0100",
            "call_type": "INBOUND",
            "call_id": 987,
            "lead_id": "L1",
            "duration": "125",
            "notes": "  called back  ",
        }
    )

    assert event.input_shape == InputShape.json
    assert event.phone_digits == "4155550100"
    assert event.call_type == "INBOUND"
    assert event.call_id == "987"
    assert event.lead_id == "L1"
    assert event.duration_seconds == 125
    assert event.notes == "called back"


def test_json_array_uses_first_element():
    event = normalize_payload([{"phone": "4155550100"}, {"phone": "2125550199"}])

    assert event.input_shape == InputShape.array
    assert event.phone_digits == "4155550100"


def test_params_array():
    event = normalize_payload({"params": [{"phone_number": "4155550100", "disposition": "Busy"}]})

    assert event.input_shape == InputShape.params_array
    assert event.disposition == "Busy"


def test_params_object():
    event = normalize_payload({"params": {"primary_phone": "(415) 555-0100"}})

    assert event.input_shape == InputShape.params_object
    assert event.phone_digits == "4155550100"


def test_params_query_string():
    event = normalize_payload(
        {"params": "phone_number=4155550100&phone_code=1&disposition_name=Left+VM&lead_id=55"}
    )

    assert event.input_shape == InputShape.params_query
    assert event.phone_digits == "4155550100"
    assert event.phone_e164 == "+14155550100"
    assert event.disposition == "Left VM"
    assert event.lead_id == "55"


def test_params_string_wins_over_array_body_check():
    shape, data = select_payload({"params": "phone=1", "phone": "2"})

    assert shape == InputShape.params_query
    assert data == {"phone": "1"}


def test_alias_order_and_case_variants():
    event = normalize_payload({"Phone": "2125550199", "PhoneNumber": "4155550100"})
    assert event.phone_digits == "4155550100"

    event = normalize_payload({"phone_number": "", "phone": "4155550100"})
    assert event.phone_digits == "4155550100"


def test_missing_fields_yield_empty_values():
    event = normalize_payload({"unrelated": "x"})

    assert event.phone_digits == ""
    assert event.disposition is None
    assert event.duration_seconds == 0
    assert event.talk_seconds == 0


def test_bad_numbers_become_zero():
    event = normalize_payload({"duration": "abc", "talk_time": "-5"})

    assert event.duration_seconds == 0
    assert event.talk_seconds == 0


def test_empty_array_and_scalar_bodies():
    assert normalize_payload([]).phone_digits == ""
    assert normalize_payload({"params": []}).phone_digits == ""
    assert normalize_payload(["not-an-object"]).input_shape == InputShape.array


def test_decode_json_body():
    raw = json.dumps({"phone": "4155550100"}).encode()
    assert decode_body(raw, "application/json") == {"phone": "4155550100"}


def test_decode_form_body():
    raw = b"params=phone_number%3D4155550100%26disposition%3DBusy"
    body = decode_body(raw, "application/x-www-form-urlencoded")

    assert body == {"params": "phone_number=4155550100&disposition=Busy"}
    assert normalize_payload(body).disposition == "Busy"


def test_decode_never_fails():
    assert decode_body(b"", "application/json") == {}
    assert decode_body(b"{not json", "application/json") == {}
    assert decode_body(b"42", "application/json") == {}


def test_decode_bracketed_form_params():
    raw = b"params%5Bphone_number%5D=4155550100&params%5Bdisposition%5D=Busy"
    body = decode_body(raw, "application/x-www-form-urlencoded")

    assert body == {"params": {"phone_number": "4155550100", "disposition": "Busy"}}
    event = normalize_payload(body)
    assert event.input_shape == InputShape.params_object
    assert event.phone_digits == "4155550100"
    assert event.disposition == "Busy"


def test_decode_indexed_form_params_without_content_type():
    raw = b"params%5B0%5D%5Bphone%5D=4155550100&params%5B1%5D%5Bphone%5D=2125550199&call_id=C1"
    body = decode_body(raw)

    assert body["params"] == [{"phone": "4155550100"}, {"phone": "2125550199"}]
    event = normalize_payload(body)
    assert event.input_shape == InputShape.params_array
    assert event.phone_digits == "4155550100"


def test_end_time_kept_apart_from_created_at():
    event = normalize_payload({"lead_id": "L9", "call_end_time": "2024-05-01 10:05:00"})

    assert event.created_at is None
    assert event.call_end_time == "2024-05-01 10:05:00"

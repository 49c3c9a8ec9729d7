import json

import pytest
from pydantic import ValidationError

from checkin_svc.core.errors import EncodingError
from checkin_svc.core.token import CheckinToken, decode, encode, encode_payload, parse

def _token(**overrides):
    fields = dict(registration_id="reg-1", event_id="event-123", user_id="user-123", issued_at=1_700_000_000_000)
    fields.update(overrides)
    return CheckinToken(**fields)

def test_payload_uses_wire_keys():
    payload = json.loads(encode_payload(_token()))
    assert payload == {
        "registrationId": "reg-1",
        "eventId": "event-123",
        "userId": "user-123",
        "timestamp": 1_700_000_000_000,
    }

def test_rendered_text_decodes_back_to_same_token():
    token = _token(registration_id="reg-ü", user_id="user with spaces")
    rendered = encode(token)
    assert decode(rendered.text) == token
    assert rendered.data_uri.startswith("data:image/png;base64,")

def test_decode_is_key_order_insensitive_and_ignores_extra_keys():
    raw = '{"timestamp": 5, "userId": "u", "extra": [1, 2], "eventId": "e", "registrationId": "r"}'
    assert decode(raw) == _token(registration_id="r", event_id="e", user_id="u", issued_at=5)

@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "",
        "{",
        "null",
        "[]",
        '"a string"',
        "42",
        "{}",
        '{"registrationId": "r", "eventId": "e", "userId": "u"}',
        '{"registrationId": 1, "eventId": "e", "userId": "u", "timestamp": 5}',
        '{"registrationId": "", "eventId": "e", "userId": "u", "timestamp": 5}',
        '{"registrationId": "r", "eventId": "e", "userId": "u", "timestamp": "5"}',
        '{"registrationId": "r", "eventId": "e", "userId": "u", "timestamp": 5.5}',
        '{"registrationId": "r", "eventId": "e", "userId": "u", "timestamp": true}',
        '{"registrationId": "r", "eventId": "e", "userId": "u", "timestamp": -1}',
        '{"registrationId": "r", "eventId": "e", "userId": null, "timestamp": 5}',
        "[" * 100000,
        "https://example.com/some-other-qr",
    ],
)
def test_decode_returns_none_for_anything_that_is_not_a_token(raw):
    assert decode(raw) is None

def test_decode_rejects_non_text_input():
    assert decode(None) is None
    assert decode(b'{"registrationId": "r"}') is None

def test_parse_reports_why_it_failed():
    result = parse('{"registrationId": "r", "eventId": "e", "userId": "u"}')
    assert not result.ok
    assert "timestamp" in result.error

def test_token_is_immutable():
    token = _token()
    with pytest.raises(ValidationError):
        token.issued_at = 0

def test_encode_refuses_malformed_token():
    bad = CheckinToken.model_construct(registration_id="", event_id="e", user_id="u", issued_at=5)
    with pytest.raises(EncodingError):
        encode(bad)

def test_python_field_names_are_not_wire_keys():
    raw = '{"registration_id": "r", "event_id": "e", "user_id": "u", "issued_at": 5}'
    assert decode(raw) is None

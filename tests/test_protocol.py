# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import json

import pytest

from webos_tv_client import (
    Message,
    SuccessResponse,
    ErrorResponse,
    RegisteredResponse,
    UnknownResponse,
    MalformedFrameError,
    decode_response,
    create_registration_message,
    load_registration_payload,
)

def test_message_encoding_omits_empty_fields():
    data = json.loads(Message(uri="ssap://audio/getVolume", id="1").encode())
    assert data == {"type": "request", "id": "1", "uri": "ssap://audio/getVolume"}

    data = json.loads(Message(uri="ssap://audio/setVolume", payload={"volume": 5}, id="2").encode())
    assert data["payload"] == {"volume": 5}

def test_message_ids_are_unique():
    ids = {Message(uri="ssap://x").id for _ in range(100)}
    assert len(ids) == 100

def test_decode_response_variants():
    success = decode_response('{"type": "response", "id": "1", "payload": {"pairingType": "PROMPT"}}')
    assert isinstance(success, SuccessResponse)
    assert success.is_pairing_prompt

    error = decode_response(b'{"type": "error", "id": "2", "error": "401 insufficient permissions"}')
    assert isinstance(error, ErrorResponse)
    assert error.error == "401 insufficient permissions"
    assert error.payload == {}

    registered = decode_response('{"type": "registered", "payload": {"client-key": "k"}}')
    assert isinstance(registered, RegisteredResponse)
    assert registered.client_key == "k"
    assert registered.id is None

    unknown = decode_response('{"type": "hello", "payload": null}')
    assert isinstance(unknown, UnknownResponse)
    assert unknown.payload == {}

def test_registered_response_with_empty_key():
    registered = decode_response('{"type": "registered", "payload": {"client-key": ""}}')
    assert isinstance(registered, RegisteredResponse)
    assert registered.client_key is None

@pytest.mark.parametrize("frame", [
    "not json",
    "[1, 2, 3]",
    '{"id": "1"}',
    '{"type": 7}',
    '{"type": "response", "id": 5}',
    '{"type": "response", "payload": [1]}',
    '{"type": "error", "error": {"code": 1}}',
])
def test_decode_response_rejects_malformed_frames(frame):
    with pytest.raises(MalformedFrameError):
        decode_response(frame)

def test_registration_message_includes_client_key():
    message = create_registration_message("secret")
    data = json.loads(message.encode())
    assert data["type"] == "register"
    assert data["payload"]["client-key"] == "secret"
    assert data["payload"]["pairingType"] == "PROMPT"
    assert "CONTROL_POWER" in data["payload"]["manifest"]["permissions"]

def test_registration_message_without_key_does_not_touch_manifest():
    manifest = load_registration_payload()
    message = create_registration_message(None, manifest=manifest)
    assert "client-key" not in message.payload
    create_registration_message("secret", manifest=manifest)
    assert "client-key" not in manifest

def test_registration_payload_is_fresh_copy():
    first = load_registration_payload()
    first["forcePairing"] = True
    assert load_registration_payload()["forcePairing"] is False

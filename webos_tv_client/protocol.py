#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Wire envelopes of the webOS TV control protocol.

Every frame is a JSON object sent as a websocket text frame.

  Client -> TV:
    {"type": "register", "id": <id>, "payload": <registration manifest, optionally with "client-key">}
    {"type": "request", "id": <id>, "uri": <command URI>, "payload": <optional arguments>}

  TV -> Client:
    {"type": "response", "id": <id>, "payload": {...}}
    {"type": "error", "id": <id>, "error": <detail>, "payload": {...}}
    {"type": "registered", "id": <id>, "payload": {"client-key": <key>}}

The "id" of a response echoes the id of the request it answers.
"""

from __future__ import annotations

import json
import uuid
from copy import deepcopy
from functools import lru_cache
from importlib import resources

from .internal_types import *
from .exceptions import MalformedFrameError

REQUEST_MSG_TYPE = "request"
REGISTER_MSG_TYPE = "register"

RSP_SUCCESS_TYPE = "response"
RSP_ERROR_TYPE = "error"
RSP_REGISTERED_TYPE = "registered"

PAIRING_TYPE_PROMPT = "PROMPT"
"""The pairingType of a "response" frame that asks the user to accept the connection on the TV."""

CLIENT_KEY_FIELD = "client-key"
"""The registration payload field that carries the client key, in both directions."""

REGISTRATION_PAYLOAD_RESOURCE = "registration_payload.json"

def new_message_id() -> str:
    """Returns a fresh correlation id."""
    return str(uuid.uuid4())

class Message:
    """An outbound request envelope."""

    type: str
    id: str
    uri: Optional[str]
    payload: Optional[JsonableDict]

    def __init__(
            self,
            uri: Optional[str]=None,
            payload: Optional[JsonableDict]=None,
            id: Optional[str]=None,
            type: str=REQUEST_MSG_TYPE,
          ):
        self.type = type
        self.id = new_message_id() if id is None else id
        self.uri = uri
        self.payload = payload

    def to_jsonable(self) -> JsonableDict:
        result: JsonableDict = { "type": self.type, "id": self.id }
        if self.uri is not None and self.uri != '':
            result["uri"] = self.uri
        if self.payload is not None and len(self.payload) > 0:
            result["payload"] = self.payload
        return result

    def encode(self) -> str:
        return json.dumps(self.to_jsonable())

    def __str__(self) -> str:
        return f"Message({self.encode()})"

    def __repr__(self) -> str:
        return str(self)

class Response:
    """An inbound envelope. Use decode_response() to construct the right subclass for a frame."""

    type: str
    id: Optional[str]
    payload: JsonableDict
    raw: JsonableDict
    """The complete decoded frame, for fields this package does not model."""

    def __init__(self, type: str, id: Optional[str], payload: JsonableDict, raw: JsonableDict):
        self.type = type
        self.id = id
        self.payload = payload
        self.raw = raw

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({json.dumps(self.raw)})"

    def __repr__(self) -> str:
        return str(self)

class SuccessResponse(Response):
    @property
    def pairing_type(self) -> Optional[str]:
        """The pairingType of a registration continuation, if present."""
        result = self.payload.get("pairingType")
        return result if isinstance(result, str) else None

    @property
    def is_pairing_prompt(self) -> bool:
        return self.pairing_type == PAIRING_TYPE_PROMPT

class ErrorResponse(Response):
    error: str

    def __init__(self, type: str, id: Optional[str], payload: JsonableDict, raw: JsonableDict, error: str):
        super().__init__(type, id, payload, raw)
        self.error = error

class RegisteredResponse(Response):
    @property
    def client_key(self) -> Optional[str]:
        result = self.payload.get(CLIENT_KEY_FIELD)
        return result if isinstance(result, str) and result != '' else None

class UnknownResponse(Response):
    """A frame with a type this package does not recognize."""
    pass

def decode_response(frame: Union[str, bytes]) -> Response:
    """Decodes a received frame.

    Raises MalformedFrameError if the frame is not a JSON object with a string "type",
    or if "id", "error" or "payload" have the wrong JSON type.
    """
    try:
        data = json.loads(frame)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedFrameError(f"Frame is not valid JSON: {frame!r}") from e
    if not isinstance(data, dict):
        raise MalformedFrameError(f"Frame is not a JSON object: {frame!r}")
    rsp_type = data.get("type")
    if not isinstance(rsp_type, str):
        raise MalformedFrameError(f"Frame has no string 'type': {frame!r}")
    rsp_id = data.get("id")
    if rsp_id is not None and not isinstance(rsp_id, str):
        raise MalformedFrameError(f"Frame 'id' is not a string: {frame!r}")
    payload = data.get("payload")
    if payload is None:
        payload = {}
    elif not isinstance(payload, dict):
        raise MalformedFrameError(f"Frame 'payload' is not an object: {frame!r}")

    if rsp_type == RSP_SUCCESS_TYPE:
        return SuccessResponse(rsp_type, rsp_id, payload, data)
    if rsp_type == RSP_ERROR_TYPE:
        error = data.get("error", "")
        if not isinstance(error, str):
            raise MalformedFrameError(f"Frame 'error' is not a string: {frame!r}")
        return ErrorResponse(rsp_type, rsp_id, payload, data, error)
    if rsp_type == RSP_REGISTERED_TYPE:
        return RegisteredResponse(rsp_type, rsp_id, payload, data)
    return UnknownResponse(rsp_type, rsp_id, payload, data)

@lru_cache(maxsize=None)
def _registration_payload_text() -> str:
    return resources.files(__package__).joinpath(REGISTRATION_PAYLOAD_RESOURCE).read_text(encoding='utf-8')

def load_registration_payload() -> JsonableDict:
    """Returns a fresh copy of the packaged registration manifest. The packaged JSON is read once."""
    data = json.loads(_registration_payload_text())
    if not isinstance(data, dict):
        raise ValueError(f"{REGISTRATION_PAYLOAD_RESOURCE} is not a JSON object")
    return data

def create_registration_message(
        client_key: Optional[str]=None,
        manifest: Optional[JsonableDict]=None,
      ) -> Message:
    """Builds the registration (pairing) request. If client_key is provided it is sent so the TV
       can skip the on-screen prompt."""
    payload = load_registration_payload() if manifest is None else deepcopy(manifest)
    if client_key is not None and client_key != '':
        payload[CLIENT_KEY_FIELD] = client_key
    return Message(type=REGISTER_MSG_TYPE, payload=payload)

"""Wire envelopes exchanged between the gateway and the browser-side peer.

Frames are UTF-8 JSON objects:
- request:   {"id": str, "type": str, "payload": any}
- response:  {"id": str, "ok": true, "result": any} | {"id": str, "ok": false, "error": str}
- heartbeat: {"type": "heartbeat"}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from .errors import DecodeError

HEARTBEAT_TYPE = "heartbeat"


@dataclass(frozen=True, slots=True)
class RequestEnvelope:
    id: str
    type: str
    payload: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "payload": self.payload}


@dataclass(frozen=True, slots=True)
class ResponseEnvelope:
    id: str
    ok: bool
    result: Any = None
    error: str | None = None

    @classmethod
    def success(cls, request_id: str, result: Any) -> ResponseEnvelope:
        return cls(id=request_id, ok=True, result=result)

    @classmethod
    def failure(cls, request_id: str, error: str) -> ResponseEnvelope:
        return cls(id=request_id, ok=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"id": self.id, "ok": True, "result": self.result}
        out: dict[str, Any] = {"id": self.id, "ok": False}
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True, slots=True)
class Heartbeat:
    def to_dict(self) -> dict[str, Any]:
        return {"type": HEARTBEAT_TYPE}


Envelope = Union[RequestEnvelope, ResponseEnvelope, Heartbeat]


def encode(envelope: Envelope) -> bytes:
    return json.dumps(envelope.to_dict(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def decode(data: bytes | bytearray | str) -> Envelope:
    """Parse one frame. Anything that is not a recognizable envelope raises DecodeError."""
    try:
        text = data if isinstance(data, str) else bytes(data).decode("utf-8")
        obj = json.loads(text)
    except (UnicodeDecodeError, ValueError) as exc:
        raise DecodeError(f"malformed frame: {exc}") from exc

    if not isinstance(obj, dict):
        raise DecodeError("frame is not an object")

    raw_id = obj.get("id")
    if raw_id is not None and not isinstance(raw_id, str):
        raise DecodeError("id must be a string")

    if "ok" in obj:
        ok = obj.get("ok")
        if raw_id is None:
            raise DecodeError("response without id")
        if not isinstance(ok, bool):
            raise DecodeError("ok must be a boolean")
        if ok:
            return ResponseEnvelope(id=raw_id, ok=True, result=obj.get("result"))
        err = obj.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            err = err["message"]
        elif err is not None and not isinstance(err, str):
            err = str(err)
        return ResponseEnvelope(id=raw_id, ok=False, error=err)

    mtype = obj.get("type")
    if not isinstance(mtype, str) or not mtype:
        raise DecodeError("missing type")
    if mtype == HEARTBEAT_TYPE and raw_id is None:
        return Heartbeat()
    if raw_id is None:
        raise DecodeError("request without id")
    return RequestEnvelope(id=raw_id, type=mtype, payload=obj.get("payload"))


__all__ = [
    "HEARTBEAT_TYPE",
    "Envelope",
    "Heartbeat",
    "RequestEnvelope",
    "ResponseEnvelope",
    "decode",
    "encode",
]

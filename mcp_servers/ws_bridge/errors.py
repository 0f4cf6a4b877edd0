from __future__ import annotations


class BridgeError(Exception):
    """Base class for every failure a bridge call can surface."""


class NoPeerError(BridgeError):
    def __init__(self, message: str = "no_extension_connected") -> None:
        super().__init__(message)


class BridgeTimeoutError(BridgeError):
    def __init__(self, request_id: str | None = None, timeout: float | None = None) -> None:
        self.request_id = request_id
        self.timeout = timeout
        super().__init__("timeout")


class RemoteError(BridgeError):
    """The peer answered with ok=false. The message is opaque text."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DecodeError(BridgeError):
    pass


class DuplicateRequestIdError(BridgeError):
    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"request id already pending: {request_id}")

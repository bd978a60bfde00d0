"""Event and wire-packet models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

import orjson
from pydantic import BaseModel, ConfigDict, Field


class ErrorLevel(str, Enum):
    """Severity of a captured event."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


class SentryMessage:
    """
    Free-text message with optional %-style parameters.

    Sentry groups messages by the unformatted text, so the raw message and
    its params are both sent alongside the formatted string.
    """

    def __init__(self, message: str, *params: Any):
        self.message = message
        self.params: Tuple[Any, ...] = params

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SentryMessage):
            return NotImplemented
        return self.message == other.message and self.params == other.params

    def __repr__(self) -> str:
        return f"SentryMessage({self.message!r}, params={self.params!r})"

    @property
    def formatted(self) -> str:
        """Message with params applied; the raw message if they don't fit."""
        if not self.params:
            return self.message
        try:
            return self.message % self.params
        except (TypeError, ValueError):
            return self.message

    def __str__(self) -> str:
        return self.formatted


MessageLike = Union[SentryMessage, str]


@dataclass
class SentryEvent:
    """
    An exception or message to capture.

    Built by the caller and consumed once by RavenClient.capture.
    """

    exception: Optional[BaseException] = None
    message: Optional[MessageLike] = None
    level: Optional[ErrorLevel] = None
    tags: Optional[Dict[str, str]] = field(default_factory=dict)
    fingerprint: Optional[List[str]] = None
    extra: Optional[Any] = None

    def __post_init__(self) -> None:
        if isinstance(self.message, str):
            self.message = SentryMessage(self.message)
        if self.level is None:
            self.level = ErrorLevel.ERROR if self.exception is not None else ErrorLevel.INFO
        else:
            self.level = ErrorLevel(self.level)

    @classmethod
    def from_exception(cls, exception: BaseException, **kwargs: Any) -> "SentryEvent":
        """Wrap an exception; level defaults to error."""
        return cls(exception=exception, **kwargs)

    @classmethod
    def from_message(cls, message: MessageLike, **kwargs: Any) -> "SentryEvent":
        """Wrap a message; level defaults to info."""
        return cls(message=message, **kwargs)


# =============================================================================
# Wire models
# =============================================================================


class SentryFrame(BaseModel):
    """Single stack frame, innermost last."""

    filename: Optional[str] = None
    abs_path: Optional[str] = None
    function: Optional[str] = None
    module: Optional[str] = None
    lineno: Optional[int] = None
    context_line: Optional[str] = None
    pre_context: Optional[List[str]] = None
    post_context: Optional[List[str]] = None
    in_app: Optional[bool] = None


class SentryStacktrace(BaseModel):
    """Stack trace of one exception."""

    frames: List[SentryFrame] = Field(default_factory=list)


class SentryException(BaseModel):
    """Sentry exception representation."""

    type: str = "Error"
    value: str = ""
    module: Optional[str] = None
    stacktrace: Optional[SentryStacktrace] = None


class SentryUser(BaseModel):
    """Sentry user context."""

    id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    ip_address: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class SentryRequest(BaseModel):
    """Sentry HTTP request context."""

    url: Optional[str] = None
    method: Optional[str] = None
    env: Optional[Dict[str, str]] = None
    headers: Optional[Dict[str, str]] = None
    cookies: Optional[Dict[str, str]] = None
    query_string: Optional[str] = None
    data: Optional[Any] = None


class SentrySdk(BaseModel):
    """Client identification sent with every packet."""

    name: str
    version: str


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Packet(BaseModel):
    """
    Sentry store packet.

    Packets are immutable. RavenClient.prepare_packet returns a copy with
    missing fields filled in instead of editing the packet in place.
    """

    model_config = ConfigDict(frozen=True)

    # Identifiers
    event_id: str
    project: str
    timestamp: datetime = Field(default_factory=utc_now)
    platform: str = "python"
    sdk: Optional[SentrySdk] = None
    level: ErrorLevel = ErrorLevel.ERROR
    logger: Optional[str] = "root"
    server_name: Optional[str] = None
    release: Optional[str] = None
    environment: Optional[str] = None
    culprit: Optional[str] = None

    # Message
    message: Optional[str] = None
    logentry: Optional[Dict[str, Any]] = None  # {"message": "...", "params": [...]}

    # Exception
    exception: Optional[Dict[str, List[SentryException]]] = None  # {"values": [...]}

    # Context
    user: Optional[SentryUser] = None
    request: Optional[SentryRequest] = None
    tags: Optional[Dict[str, str]] = None
    extra: Optional[Any] = None
    fingerprint: Optional[List[str]] = None
    modules: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dict with unset (None) fields dropped."""
        return self.model_dump(mode="json", exclude_none=True)

    def to_json(self) -> bytes:
        """Compact UTF-8 JSON body."""
        return orjson.dumps(self.to_dict())

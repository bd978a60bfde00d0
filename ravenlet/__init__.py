"""ravenlet - asynchronous error reporting client for Sentry."""

from .client import RavenClient
from .config import ClientSettings
from .context import (
    DictRequestContext,
    DictUserContext,
    KeyedCollection,
    MappingCollection,
    RequestContext,
    Scrubber,
    UserContext,
)
from .dsn import Dsn
from .exceptions import InvalidDsnError, RavenletError
from .models import (
    ErrorLevel,
    Packet,
    SentryEvent,
    SentryException,
    SentryMessage,
    SentryRequest,
    SentryUser,
)
from .packet import CLIENT_VERSION, PacketFactory, create_auth_header, user_agent
from .snapshots import RequestSnapshotFactory, UserSnapshotFactory, scrubber_hook
from .tags import merge_tags

__version__ = CLIENT_VERSION

__all__ = [
    "ClientSettings",
    "DictRequestContext",
    "DictUserContext",
    "Dsn",
    "ErrorLevel",
    "InvalidDsnError",
    "KeyedCollection",
    "MappingCollection",
    "Packet",
    "PacketFactory",
    "RavenClient",
    "RavenletError",
    "RequestContext",
    "RequestSnapshotFactory",
    "Scrubber",
    "SentryEvent",
    "SentryException",
    "SentryMessage",
    "SentryRequest",
    "SentryUser",
    "UserContext",
    "UserSnapshotFactory",
    "create_auth_header",
    "merge_tags",
    "scrubber_hook",
    "user_agent",
]

"""Packet construction and request authentication."""

import linecache
import socket
import time
import traceback
import uuid
from functools import lru_cache
from importlib import metadata
from types import TracebackType
from typing import Dict, List, Optional

from .dsn import Dsn
from .models import (
    Packet,
    SentryEvent,
    SentryException,
    SentryFrame,
    SentrySdk,
    SentryStacktrace,
)

CLIENT_NAME = "ravenlet"
CLIENT_VERSION = "1.0.0"
SENTRY_VERSION = 7
CONTEXT_LINES = 5


def user_agent() -> str:
    """Identifier sent as User-Agent and sentry_client."""
    return f"{CLIENT_NAME}/{CLIENT_VERSION}"


def create_auth_header(dsn: Dsn, timestamp: Optional[int] = None) -> str:
    """
    Build the X-Sentry-Auth header value.

    Format:
    Sentry sentry_version=7, sentry_client=ravenlet/1.0.0,
           sentry_timestamp=<unix>, sentry_key=<public>, sentry_secret=<secret>

    The sentry_secret part is left out if the DSN has no secret key.

    Args:
        dsn: Parsed DSN holding the keys
        timestamp: Unix seconds; defaults to now

    Returns:
        Header value
    """
    if timestamp is None:
        timestamp = int(time.time())

    parts = [
        f"sentry_version={SENTRY_VERSION}",
        f"sentry_client={user_agent()}",
        f"sentry_timestamp={timestamp}",
        f"sentry_key={dsn.public_key}",
    ]
    if dsn.secret_key:
        parts.append(f"sentry_secret={dsn.secret_key}")

    return "Sentry " + ", ".join(parts)


@lru_cache(maxsize=1)
def installed_modules() -> Dict[str, str]:
    """Installed distributions and their versions."""
    modules = {}
    for dist in metadata.distributions():
        name = dist.metadata["Name"]
        if name:
            modules[name] = dist.version
    return modules


class PacketFactory:
    """
    Turns a SentryEvent into a Packet.

    User, request, logger, release and environment are left unset; the
    client fills them in when the packet is prepared for sending.
    """

    def create(self, project_id: str, event: SentryEvent) -> Packet:
        """
        Build a packet for the given event.

        Args:
            project_id: Project the event belongs to
            event: Event with tags already merged

        Returns:
            New packet with a fresh event_id
        """
        exceptions = exception_chain(event.exception) if event.exception is not None else []

        fields = {
            "event_id": uuid.uuid4().hex,
            "project": str(project_id),
            "sdk": SentrySdk(name=CLIENT_NAME, version=CLIENT_VERSION),
            "level": event.level,
            "server_name": socket.gethostname(),
            "tags": dict(event.tags) if event.tags else None,
            "fingerprint": list(event.fingerprint) if event.fingerprint else None,
            "extra": event.extra,
            "modules": installed_modules() or None,
        }

        if event.message is not None:
            fields["message"] = event.message.formatted
            if event.message.params:
                fields["logentry"] = {
                    "message": event.message.message,
                    "params": list(event.message.params),
                }
        elif exceptions:
            last = exceptions[-1]
            fields["message"] = f"{last.type}: {last.value}" if last.value else last.type

        if exceptions:
            fields["exception"] = {"values": exceptions}
            fields["culprit"] = culprit(exceptions[-1])

        return Packet(**fields)


def exception_chain(exception: BaseException) -> List[SentryException]:
    """
    Convert an exception and its causes, oldest first.

    Follows __cause__, then __context__ unless it was suppressed with
    "raise ... from None".
    """
    chain = []
    seen = set()
    current: Optional[BaseException] = exception

    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(convert_exception(current))

        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None

    chain.reverse()
    return chain


def convert_exception(exception: BaseException) -> SentryException:
    exc_type = type(exception)
    module = exc_type.__module__
    frames = stack_frames(exception.__traceback__)

    return SentryException(
        type=exc_type.__qualname__,
        value=str(exception),
        module=None if module == "builtins" else module,
        stacktrace=SentryStacktrace(frames=frames) if frames else None,
    )


def stack_frames(tb: Optional[TracebackType]) -> List[SentryFrame]:
    """Frames of a traceback, outermost first."""
    frames = []
    for frame, lineno in traceback.walk_tb(tb):
        code = frame.f_code
        abs_path = code.co_filename
        module_globals = frame.f_globals
        module = module_globals.get("__name__")

        lines = [
            linecache.getline(abs_path, n, module_globals).rstrip("\r\n")
            for n in range(max(lineno - CONTEXT_LINES, 1), lineno + CONTEXT_LINES + 1)
        ]
        if not any(lines):
            lines = []
        index = lineno - max(lineno - CONTEXT_LINES, 1)
        context_line = lines[index] if index < len(lines) else None

        frames.append(
            SentryFrame(
                filename=_short_filename(abs_path, module),
                abs_path=abs_path,
                function=code.co_name,
                module=module,
                lineno=lineno,
                context_line=context_line or None,
                pre_context=lines[:index] or None,
                post_context=lines[index + 1 :] or None,
                in_app=not _is_library_path(abs_path),
            )
        )
    return frames


def culprit(exception: SentryException) -> Optional[str]:
    """Innermost frame as "module in function"."""
    if exception.stacktrace is None or not exception.stacktrace.frames:
        return None
    frame = exception.stacktrace.frames[-1]
    return f"{frame.module or frame.filename} in {frame.function}"


def _short_filename(abs_path: str, module: Optional[str]) -> str:
    """Path relative to the module's package root when it can be derived."""
    if not module or module == "__main__":
        return abs_path
    depth = module.count(".") + 1
    if abs_path.endswith("__init__.py"):
        depth += 1
    parts = abs_path.replace("\\", "/").split("/")
    return "/".join(parts[-depth:])


def _is_library_path(path: str) -> bool:
    return "site-packages" in path or "dist-packages" in path

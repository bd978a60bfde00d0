"""The Raven client: captures events and sends them to Sentry."""

import sys
import traceback
import warnings
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Union

import httpx
import structlog

from .context import RequestContext, Scrubber, UserContext
from .dsn import Dsn
from .models import ErrorLevel, MessageLike, Packet, SentryEvent
from .packet import PacketFactory, create_auth_header, user_agent
from .snapshots import RequestSnapshotFactory, UserSnapshotFactory, scrubber_hook
from .tags import merge_tags

if TYPE_CHECKING:
    from .config import ClientSettings

logger = structlog.get_logger(__name__)

DEFAULT_LOGGER = "root"
DEFAULT_TIMEOUT = 5.0  # seconds

ErrorHook = Callable[[Exception], Any]


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class RavenClient:
    """
    Captures exceptions and messages and sends them to Sentry.

    A client is created once per process and shared. capture() never raises
    on failure: errors are passed to error_on_capture if it is set, or
    written to stderr, and capture() returns None.

    The attributes (tags, logger, release, environment, timeout,
    error_on_capture) may be changed after construction, but nothing
    synchronizes those changes with captures already in flight. Configure
    the client before sharing it between tasks or threads.
    """

    def __init__(
        self,
        dsn: Union[str, Dsn],
        tags: Optional[Dict[str, str]] = None,
        logger: str = DEFAULT_LOGGER,
        release: Optional[str] = None,
        environment: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        error_on_capture: Optional[ErrorHook] = None,
        log_scrubber: Optional[Scrubber] = None,
        packet_factory: Optional[PacketFactory] = None,
        request_factory: Optional[RequestSnapshotFactory] = None,
        user_factory: Optional[UserSnapshotFactory] = None,
    ):
        """
        Initialize the client.

        Args:
            dsn: Data Source Name of the Sentry project
            tags: Default tags sent with every event
            logger: Logger name used when an event doesn't set one
            release: Application version
            environment: Deployment environment (e.g. production)
            timeout: Seconds to wait for Sentry before giving up
            error_on_capture: Called with the exception when a capture fails
            log_scrubber: Redacts request data when no request_factory is given
            packet_factory: Builds packets from events
            request_factory: Builds request snapshots
            user_factory: Builds user snapshots

        Raises:
            ValueError: If dsn is None
            InvalidDsnError: If dsn is malformed
        """
        if dsn is None:
            raise ValueError("dsn must not be None")

        self._dsn = dsn if isinstance(dsn, Dsn) else Dsn(dsn)
        self._tags: Dict[str, str] = dict(tags) if tags else {}

        self.logger = logger
        self.release = release
        self.environment = environment
        self.timeout = timeout
        self.error_on_capture = error_on_capture
        self.log_scrubber = log_scrubber

        if request_factory is None:
            on_create = scrubber_hook(log_scrubber) if log_scrubber is not None else None
            request_factory = RequestSnapshotFactory(on_create=on_create)

        self.packet_factory = packet_factory or PacketFactory()
        self.request_factory = request_factory
        self.user_factory = user_factory or UserSnapshotFactory()

    @classmethod
    def from_settings(cls, settings: "ClientSettings", **kwargs: Any) -> "RavenClient":
        """
        Create a client from ClientSettings.

        Args:
            settings: Loaded settings; settings.dsn must be set
            **kwargs: Extra constructor arguments (hooks, factories)

        Returns:
            Configured client
        """
        return cls(
            settings.dsn,
            tags=settings.tags,
            logger=settings.logger,
            release=settings.release,
            environment=settings.environment,
            timeout=settings.timeout,
            **kwargs,
        )

    @property
    def current_dsn(self) -> Dsn:
        """The DSN events are sent to."""
        return self._dsn

    @property
    def tags(self) -> Dict[str, str]:
        """Default tags sent with every event. Mutable."""
        return self._tags

    async def capture(
        self,
        event: SentryEvent,
        request: Optional[RequestContext] = None,
        user: Optional[UserContext] = None,
    ) -> Optional[str]:
        """
        Capture an event.

        Args:
            event: Event to send; its tags are replaced by the merged tags
            request: Request being handled, if any
            user: Authenticated user, if any

        Returns:
            Response body from Sentry (containing the event id), or None
            if the capture failed

        Raises:
            ValueError: If event is None
        """
        if event is None:
            raise ValueError("event must not be None")

        try:
            event.tags = self.merge_tags(event.tags)
            packet = self.packet_factory.create(self._dsn.project_id, event)
        except Exception as e:
            return self._handle_exception(e)

        return await self.send(packet, request=request, user=user)

    async def capture_exception(
        self,
        exception: BaseException,
        message: Optional[MessageLike] = None,
        level: ErrorLevel = ErrorLevel.ERROR,
        tags: Optional[Dict[str, str]] = None,
        fingerprint: Optional[List[str]] = None,
        extra: Optional[Any] = None,
        request: Optional[RequestContext] = None,
        user: Optional[UserContext] = None,
    ) -> Optional[str]:
        """Deprecated: use capture(SentryEvent.from_exception(...))."""
        warnings.warn(
            "capture_exception() is deprecated, use capture(SentryEvent) instead",
            DeprecationWarning,
            stacklevel=2,
        )
        event = SentryEvent(
            exception=exception,
            message=message,
            level=level,
            tags=tags,
            fingerprint=fingerprint,
            extra=extra,
        )
        return await self.capture(event, request=request, user=user)

    async def capture_message(
        self,
        message: MessageLike,
        level: ErrorLevel = ErrorLevel.INFO,
        tags: Optional[Dict[str, str]] = None,
        fingerprint: Optional[List[str]] = None,
        extra: Optional[Any] = None,
        request: Optional[RequestContext] = None,
        user: Optional[UserContext] = None,
    ) -> Optional[str]:
        """Deprecated: use capture(SentryEvent.from_message(...))."""
        warnings.warn(
            "capture_message() is deprecated, use capture(SentryEvent) instead",
            DeprecationWarning,
            stacklevel=2,
        )
        event = SentryEvent(
            message=message,
            level=level,
            tags=tags,
            fingerprint=fingerprint,
            extra=extra,
        )
        return await self.capture(event, request=request, user=user)

    def merge_tags(self, tags: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Default tags overridden by the given tags."""
        return merge_tags(self._tags, tags)

    def prepare_packet(
        self,
        packet: Packet,
        request: Optional[RequestContext] = None,
        user: Optional[UserContext] = None,
    ) -> Packet:
        """
        Fill in packet fields the event left unset.

        Fields already set on the packet are never overwritten. A "root"
        logger counts as unset when the client has a logger of its own.

        Args:
            packet: Packet built from the event
            request: Request being handled, if any
            user: Authenticated user, if any

        Returns:
            Copy of the packet ready to send
        """
        updates: Dict[str, Any] = {}

        if _blank(packet.logger) or (packet.logger == DEFAULT_LOGGER and not _blank(self.logger)):
            updates["logger"] = self.logger
        if packet.user is None:
            updates["user"] = self.user_factory.create(user)
        if packet.request is None:
            updates["request"] = self.request_factory.create(request)
        if _blank(packet.release):
            updates["release"] = self.release
        if _blank(packet.environment):
            updates["environment"] = self.environment

        return packet.model_copy(update=updates)

    async def send(
        self,
        packet: Packet,
        request: Optional[RequestContext] = None,
        user: Optional[UserContext] = None,
    ) -> Optional[str]:
        """
        Prepare and post a packet to Sentry.

        Args:
            packet: Packet to send
            request: Request being handled, if any
            user: Authenticated user, if any

        Returns:
            Response body from Sentry, or None if sending failed
        """
        try:
            packet = self.prepare_packet(packet, request=request, user=user)
            body = packet.to_json()

            headers = {
                "Accept": "application/json",
                "Content-Type": "application/json",
                "User-Agent": user_agent(),
                "X-Sentry-Auth": create_auth_header(self._dsn),
            }

            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self._dsn.store_uri, content=body, headers=headers)
                response.raise_for_status()

            logger.debug(
                "event_sent",
                event_id=packet.event_id,
                status_code=response.status_code,
            )
            return response.text

        except Exception as e:
            return self._handle_exception(e)

    def _handle_exception(self, exception: Exception) -> None:
        """Report a failed capture without raising."""
        logger.debug("capture_failed", error=repr(exception))

        try:
            if self.error_on_capture is not None:
                self.error_on_capture(exception)
                return None

            formatted = "".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
            sys.stderr.write(f"[ERROR] {formatted}")

            if isinstance(exception, httpx.HTTPStatusError):
                sys.stderr.write(f"[MESSAGE BODY] {exception.response.text}\n")

        except Exception as e:
            logger.error("capture_error_handling_failed", error=repr(e))

        return None

"""Point-in-time request and user snapshots."""

from typing import Any, Callable, Dict, Optional, TypeVar

import structlog

from .context import KeyedCollection, RequestContext, Scrubber, UserContext
from .models import SentryRequest, SentryUser
from .result import Failure, Result, extract

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Keys with these prefixes duplicate information present elsewhere in the
# snapshot (ALL_HTTP, ALL_RAW, HTTP_USER_AGENT, ...).
IGNORED_KEY_PREFIXES = ("ALL_", "HTTP_")

RequestHook = Callable[[Optional[SentryRequest]], Optional[SentryRequest]]
UserHook = Callable[[Optional[SentryUser]], Optional[SentryUser]]


def _identity(snapshot: Any) -> Any:
    return snapshot


def filter_collection(collection: Optional[KeyedCollection]) -> Optional[Dict[str, str]]:
    """
    Copy a keyed collection into a plain dict.

    None keys are skipped, other keys are stringified, and keys starting
    with ALL_ or HTTP_ are dropped (case-sensitive).

    Args:
        collection: Live collection from the request context

    Returns:
        Filtered copy, or None if there is no collection
    """
    if collection is None:
        return None

    result: Dict[str, str] = {}
    for key in collection.list_keys():
        if key is None:
            continue

        string_key = key if isinstance(key, str) else str(key)
        if string_key.startswith(IGNORED_KEY_PREFIXES):
            continue

        value = collection.value_at(key)
        result[string_key] = "" if value is None else value

    return result


def _unwrap(result: "Result[T]", field: str, snapshot: str) -> Optional[T]:
    """Collapse an extraction result to an optional value, logging failures."""
    if isinstance(result, Failure):
        logger.warning(
            f"{snapshot}_extraction_failed",
            field=field,
            error=repr(result.reason),
        )
    return result.to_optional()


class RequestSnapshotFactory:
    """
    Builds SentryRequest snapshots from a RequestContext.

    on_create receives every snapshot (including None when there is no
    request) and returns the one that is attached to the packet. Use it to
    redact or replace request data.
    """

    def __init__(self, on_create: Optional[RequestHook] = None):
        self.on_create: RequestHook = on_create or _identity

    def create(self, context: Optional[RequestContext]) -> Optional[SentryRequest]:
        """
        Snapshot the given request.

        Args:
            context: Request being handled, or None outside a request

        Returns:
            SentryRequest, or None if there is no request
        """
        if context is None:
            return self._hook(None)

        request = SentryRequest(
            url=self._field("url", lambda: context.path),
            method=self._field("method", lambda: context.method),
            env=self._field("env", lambda: filter_collection(context.server_variables())),
            headers=self._field("headers", lambda: filter_collection(context.headers())),
            cookies=self._field("cookies", lambda: filter_collection(context.cookies())),
            query_string=self._field("query_string", lambda: context.query_string),
            data=self._field("data", lambda: self._body(context)),
        )

        return self._hook(request)

    def _field(self, name: str, getter: Callable[[], T]) -> Optional[T]:
        return _unwrap(extract(getter), name, "request")

    def _hook(self, request: Optional[SentryRequest]) -> Optional[SentryRequest]:
        return _unwrap(extract(lambda: self.on_create(request)), "on_create", "request")

    @staticmethod
    def _body(context: RequestContext) -> Any:
        """Form fields if there are any, otherwise the raw body text."""
        form = context.form()
        if form is not None and any(True for _ in form.list_keys()):
            return filter_collection(form)
        return context.read_body()


class UserSnapshotFactory:
    """Builds SentryUser snapshots from a UserContext."""

    def __init__(self, on_create: Optional[UserHook] = None):
        self.on_create: UserHook = on_create or _identity

    def create(self, context: Optional[UserContext]) -> Optional[SentryUser]:
        """
        Snapshot the given user.

        Args:
            context: Authenticated principal, or None if there is none

        Returns:
            SentryUser, or None if there is no user
        """
        if context is None:
            return self._hook(None)

        claims = self._field("data", lambda: context.claims)
        user = SentryUser(
            id=self._field("id", lambda: _optional_str(context.user_id)),
            username=self._field("username", lambda: context.username),
            email=self._field("email", lambda: context.email),
            ip_address=self._field("ip_address", lambda: context.ip_address),
            data=dict(claims) if claims else None,
        )

        return self._hook(user)

    def _field(self, name: str, getter: Callable[[], T]) -> Optional[T]:
        return _unwrap(extract(getter), name, "user")

    def _hook(self, user: Optional[SentryUser]) -> Optional[SentryUser]:
        return _unwrap(extract(lambda: self.on_create(user)), "on_create", "user")


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def scrubber_hook(scrubber: Scrubber) -> RequestHook:
    """
    Build an on_create hook that runs a Scrubber over a request snapshot.

    The scrubber is applied to every string value of data, query_string,
    headers, cookies and env.

    Args:
        scrubber: Object with a scrub(text) method

    Returns:
        Hook suitable for RequestSnapshotFactory(on_create=...)
    """

    def scrub_value(value: Any) -> Any:
        if isinstance(value, str):
            return scrubber.scrub(value)
        if isinstance(value, dict):
            return {k: scrub_value(v) for k, v in value.items()}
        return value

    def hook(request: Optional[SentryRequest]) -> Optional[SentryRequest]:
        if request is None:
            return None
        return request.model_copy(
            update={
                "data": scrub_value(request.data),
                "query_string": scrub_value(request.query_string),
                "headers": scrub_value(request.headers),
                "cookies": scrub_value(request.cookies),
                "env": scrub_value(request.env),
            }
        )

    return hook

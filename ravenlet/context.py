"""
Request and user context interfaces.

Snapshot factories only talk to these protocols, so any web framework can be
supported by a small adapter (see ravenlet.integrations.starlette). The
context for the request being handled is passed to RavenClient.capture
explicitly; nothing here is process-wide.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyedCollection(Protocol):
    """Read-only keyed collection such as headers, cookies or form fields."""

    def list_keys(self) -> Iterable[Any]:
        ...

    def value_at(self, key: Any) -> Optional[str]:
        ...


@runtime_checkable
class RequestContext(Protocol):
    """The HTTP request currently being handled."""

    @property
    def path(self) -> Optional[str]:
        ...

    @property
    def method(self) -> Optional[str]:
        ...

    @property
    def query_string(self) -> Optional[str]:
        ...

    def server_variables(self) -> Optional[KeyedCollection]:
        ...

    def headers(self) -> Optional[KeyedCollection]:
        ...

    def cookies(self) -> Optional[KeyedCollection]:
        ...

    def form(self) -> Optional[KeyedCollection]:
        ...

    def read_body(self) -> Optional[str]:
        ...


@runtime_checkable
class UserContext(Protocol):
    """The authenticated principal of the current request."""

    @property
    def user_id(self) -> Optional[str]:
        ...

    @property
    def username(self) -> Optional[str]:
        ...

    @property
    def email(self) -> Optional[str]:
        ...

    @property
    def ip_address(self) -> Optional[str]:
        ...

    @property
    def claims(self) -> Optional[Mapping[str, Any]]:
        ...


@runtime_checkable
class Scrubber(Protocol):
    """Removes sensitive information from text before it is sent."""

    def scrub(self, text: str) -> str:
        ...


class MappingCollection:
    """KeyedCollection over any mapping."""

    def __init__(self, mapping: Optional[Mapping[Any, Any]] = None):
        self._mapping = mapping if mapping is not None else {}

    def list_keys(self) -> Iterable[Any]:
        return list(self._mapping.keys())

    def value_at(self, key: Any) -> Optional[str]:
        value = self._mapping.get(key)
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)

    def __len__(self) -> int:
        return len(self._mapping)


class DictRequestContext:
    """
    In-memory RequestContext.

    Useful for background jobs and non-ASGI frameworks, and in tests.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        method: Optional[str] = None,
        query_string: Optional[str] = None,
        server_variables: Optional[Mapping[Any, Any]] = None,
        headers: Optional[Mapping[Any, Any]] = None,
        cookies: Optional[Mapping[Any, Any]] = None,
        form: Optional[Mapping[Any, Any]] = None,
        body: Optional[str] = None,
    ):
        self._path = path
        self._method = method
        self._query_string = query_string
        self._server_variables = server_variables
        self._headers = headers
        self._cookies = cookies
        self._form = form
        self._body = body

    @property
    def path(self) -> Optional[str]:
        return self._path

    @property
    def method(self) -> Optional[str]:
        return self._method

    @property
    def query_string(self) -> Optional[str]:
        return self._query_string

    def server_variables(self) -> Optional[KeyedCollection]:
        return _wrap(self._server_variables)

    def headers(self) -> Optional[KeyedCollection]:
        return _wrap(self._headers)

    def cookies(self) -> Optional[KeyedCollection]:
        return _wrap(self._cookies)

    def form(self) -> Optional[KeyedCollection]:
        return _wrap(self._form)

    def read_body(self) -> Optional[str]:
        return self._body


class DictUserContext:
    """In-memory UserContext."""

    def __init__(
        self,
        user_id: Optional[str] = None,
        username: Optional[str] = None,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        claims: Optional[Dict[str, Any]] = None,
    ):
        self.user_id = user_id
        self.username = username
        self.email = email
        self.ip_address = ip_address
        self.claims = claims


def _wrap(mapping: Optional[Mapping[Any, Any]]) -> Optional[KeyedCollection]:
    if mapping is None:
        return None
    return MappingCollection(mapping)

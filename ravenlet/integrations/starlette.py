"""Request and user contexts for Starlette and FastAPI requests."""

from typing import Any, Dict, Iterable, Mapping, Optional

from starlette.requests import Request

from ..context import KeyedCollection, MappingCollection

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class FormCollection(MappingCollection):
    """Form fields; uploaded files are represented by their file name."""

    def value_at(self, key: Any) -> Optional[str]:
        value = self._mapping.get(key)
        if value is None or isinstance(value, str):
            return value
        filename = getattr(value, "filename", None)
        return filename if filename is not None else str(value)


class StarletteRequestContext:
    """
    RequestContext backed by a Starlette request.

    Starlette reads bodies asynchronously, so the body and form are read up
    front by from_request(). Read errors are kept and raised again when the
    snapshot factory asks for the body, which records them as failed
    extractions.
    """

    def __init__(
        self,
        request: Request,
        body: Optional[bytes] = None,
        form: Optional[Mapping[str, Any]] = None,
        body_error: Optional[Exception] = None,
        form_error: Optional[Exception] = None,
    ):
        self._request = request
        self._body = body
        self._form = form
        self._body_error = body_error
        self._form_error = form_error

    @classmethod
    async def from_request(cls, request: Request) -> "StarletteRequestContext":
        """
        Read the request body and form.

        Args:
            request: Current request

        Returns:
            Context ready to be passed to RavenClient.capture
        """
        body = form = body_error = form_error = None

        # The form is parsed from the stream, so it is read first. Both are
        # cached on the request once an endpoint has read them.
        content_type = request.headers.get("content-type", "")
        if content_type.startswith(FORM_CONTENT_TYPES):
            try:
                form = await request.form()
            except Exception as e:
                form_error = e

        try:
            body = await request.body()
        except Exception as e:
            body_error = e

        return cls(request, body=body, form=form, body_error=body_error, form_error=form_error)

    @property
    def path(self) -> Optional[str]:
        return self._request.url.path

    @property
    def method(self) -> Optional[str]:
        return self._request.method

    @property
    def query_string(self) -> Optional[str]:
        return self._request.url.query

    def server_variables(self) -> Optional[KeyedCollection]:
        return MappingCollection(server_variables(self._request.scope, self._request.headers.items()))

    def headers(self) -> Optional[KeyedCollection]:
        return MappingCollection(self._request.headers)

    def cookies(self) -> Optional[KeyedCollection]:
        return MappingCollection(self._request.cookies)

    def form(self) -> Optional[KeyedCollection]:
        if self._form_error is not None:
            raise self._form_error
        if self._form is None:
            return None
        return FormCollection(self._form)

    def read_body(self) -> Optional[str]:
        if self._body_error is not None:
            raise self._body_error
        if not self._body:
            return None
        return self._body.decode("utf-8", errors="replace")


def server_variables(scope: Mapping[str, Any], headers: Iterable) -> Dict[str, str]:
    """
    CGI-style server variables for an ASGI scope.

    Headers are included as HTTP_* entries, as a CGI server would.
    """
    client = scope.get("client") or (None, None)
    server = scope.get("server") or (None, None)

    variables = {
        "REQUEST_METHOD": scope.get("method"),
        "SCRIPT_NAME": scope.get("root_path", ""),
        "PATH_INFO": scope.get("path"),
        "QUERY_STRING": scope.get("query_string", b"").decode("latin-1"),
        "REMOTE_ADDR": client[0],
        "REMOTE_PORT": client[1],
        "SERVER_NAME": server[0],
        "SERVER_PORT": server[1],
        "SERVER_PROTOCOL": f"HTTP/{scope.get('http_version', '1.1')}",
        "wsgi.url_scheme": scope.get("scheme", "http"),
    }

    for name, value in headers:
        key = name.upper().replace("-", "_")
        if key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            variables[key] = value
        else:
            variables[f"HTTP_{key}"] = value

    return {key: str(value) for key, value in variables.items() if value is not None}


class StarletteUserContext:
    """UserContext backed by request.user (AuthenticationMiddleware) and the client address."""

    def __init__(self, request: Request):
        self._request = request
        self._user = request.scope["user"] if "user" in request.scope else None

    @classmethod
    def from_request(cls, request: Request) -> Optional["StarletteUserContext"]:
        """
        Context for the request's user.

        Returns:
            Context, or None if there is neither an authenticated user nor
            a client address
        """
        context = cls(request)
        if not context.is_authenticated and context.ip_address is None:
            return None
        return context

    @property
    def is_authenticated(self) -> bool:
        return bool(getattr(self._user, "is_authenticated", False))

    @property
    def user_id(self) -> Optional[str]:
        if not self.is_authenticated:
            return None
        try:
            return str(self._user.identity)
        except NotImplementedError:
            return None

    @property
    def username(self) -> Optional[str]:
        if not self.is_authenticated:
            return None
        return self._user.display_name or None

    @property
    def email(self) -> Optional[str]:
        if not self.is_authenticated:
            return None
        return getattr(self._user, "email", None)

    @property
    def ip_address(self) -> Optional[str]:
        client = self._request.client
        return client.host if client else None

    @property
    def claims(self) -> Optional[Mapping[str, Any]]:
        auth = self._request.scope.get("auth")
        scopes = getattr(auth, "scopes", None)
        if not scopes:
            return None
        return {"scopes": list(scopes)}

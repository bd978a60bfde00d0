"""DSN (Data Source Name) parsing."""

from typing import Optional
from urllib.parse import urlparse

from .exceptions import InvalidDsnError

ALLOWED_SCHEMES = ("http", "https")


class Dsn:
    """
    Parsed Sentry DSN.

    DSN format:
    {PROTOCOL}://{PUBLIC_KEY}[:{SECRET_KEY}]@{HOST}[:{PORT}]/{PATH}{PROJECT_ID}

    Events are posted to the legacy store endpoint:
    {PROTOCOL}://{HOST}[:{PORT}]/{PATH}api/{PROJECT_ID}/store/
    """

    def __init__(self, dsn: str):
        """
        Parse a DSN string.

        Args:
            dsn: Full DSN string

        Raises:
            ValueError: If dsn is None
            InvalidDsnError: If the DSN is not a string or is malformed
        """
        if dsn is None:
            raise ValueError("dsn must not be None")
        if not isinstance(dsn, str):
            raise InvalidDsnError(dsn, f"expected a string, got {type(dsn).__name__}")

        self.original = dsn.strip()

        try:
            parsed = urlparse(self.original)
            port = parsed.port
        except ValueError as e:
            raise InvalidDsnError(dsn, str(e)) from e

        if parsed.scheme not in ALLOWED_SCHEMES:
            raise InvalidDsnError(dsn, f"unsupported protocol {parsed.scheme!r}")
        if not parsed.username:
            raise InvalidDsnError(dsn, "missing public key")
        if not parsed.hostname:
            raise InvalidDsnError(dsn, "missing host")

        path, _, project_id = parsed.path.rpartition("/")
        if not project_id.isdigit():
            raise InvalidDsnError(dsn, "missing or non-numeric project id")

        self.scheme = parsed.scheme
        self.public_key = parsed.username
        self.secret_key: Optional[str] = parsed.password or None
        self.host = parsed.hostname
        self.port = port
        self.path = path.strip("/")
        self.project_id = project_id

    @property
    def netloc(self) -> str:
        """Host with the explicit port, if any."""
        if self.port is None:
            return self.host
        return f"{self.host}:{self.port}"

    @property
    def store_uri(self) -> str:
        """Endpoint events are posted to."""
        prefix = f"/{self.path}" if self.path else ""
        return f"{self.scheme}://{self.netloc}{prefix}/api/{self.project_id}/store/"

    def __str__(self) -> str:
        return self.original

    def __repr__(self) -> str:
        return f"Dsn({self.scheme}://{self.public_key}@{self.netloc}, project={self.project_id})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dsn):
            return NotImplemented
        return self.original == other.original

    def __hash__(self) -> int:
        return hash(self.original)

"""Exceptions raised by the ravenlet client."""


class RavenletError(Exception):
    """Base class for all ravenlet errors."""


class InvalidDsnError(RavenletError, ValueError):
    """The DSN could not be parsed into a usable endpoint.

    This is the only error the client lets escape to the integrating
    application, and it is raised while the client is being constructed.
    """

    def __init__(self, dsn: str, reason: str):
        self.dsn = dsn
        self.reason = reason
        super().__init__(f"Invalid DSN {dsn!r}: {reason}")

"""FastAPI integration: capture unhandled exceptions."""

from typing import Callable, Optional, Type

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException
from starlette.responses import Response

from ..client import RavenClient
from ..models import SentryEvent
from .starlette import StarletteRequestContext, StarletteUserContext

logger = structlog.get_logger(__name__)

# Scope key holding the exception already reported for the request
CAPTURED_SCOPE_KEY = "ravenlet.captured"

# Raised by the app on purpose and answered by their own handlers
EXPECTED_EXCEPTIONS = (HTTPException, RequestValidationError)


async def capture_request_exception(client: RavenClient, request: Request, exc: Exception) -> Optional[str]:
    """
    Capture exc with the request and its user.

    Returns:
        Sentry response body, or None if the event was not sent
    """
    request_context = await StarletteRequestContext.from_request(request)
    user_context = StarletteUserContext.from_request(request)

    result = await client.capture(
        SentryEvent.from_exception(exc),
        request=request_context,
        user=user_context,
    )
    request.scope[CAPTURED_SCOPE_KEY] = exc

    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error=repr(exc),
        reported=result is not None,
    )
    return result


def capture_route_class(client: RavenClient) -> Type[APIRoute]:
    """
    APIRoute subclass reporting exceptions raised by its endpoint.

    The exception is captured with the endpoint's own Request, whose body
    and form are still cached at that point, and then raised again.

    Usage:
        router = APIRouter(route_class=capture_route_class(client))
    """

    class CaptureRoute(APIRoute):
        def get_route_handler(self) -> Callable:
            handler = super().get_route_handler()

            async def capture_handler(request: Request) -> Response:
                try:
                    return await handler(request)
                except EXPECTED_EXCEPTIONS:
                    raise
                except Exception as exc:
                    await capture_request_exception(client, request, exc)
                    raise

            return capture_handler

    return CaptureRoute


def install_exception_handler(app: FastAPI, client: RavenClient) -> None:
    """
    Report unhandled exceptions raised by the app's endpoints.

    Routes declared after this call use capture_route_class(client), so
    their events include the request body and form fields. Exceptions that
    reach the server error handler without having been captured, such as
    those raised by middleware or by routes declared earlier, are captured
    there without the body. Every unhandled exception is answered with a
    plain 500 response. HTTPException and validation errors have their own
    handlers and are not reported.

    Args:
        app: Application to instrument
        client: Client events are sent with
    """
    app.router.route_class = capture_route_class(client)

    async def capture_unhandled(request: Request, exc: Exception) -> JSONResponse:
        if request.scope.get(CAPTURED_SCOPE_KEY) is not exc:
            await capture_request_exception(client, request, exc)

        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

    app.add_exception_handler(Exception, capture_unhandled)

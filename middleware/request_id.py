"""
Request ID middleware.

Every request gets an id (client-provided X-Request-ID or a fresh UUID).
It is stored on request.state, echoed in the response headers, and copied
into the RequestContext that routers pass down to the services. Nothing is
kept in global or context-local state.
"""

import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER)

        if not request_id:
            request_id = str(uuid.uuid4())
        request_id = request_id[:MAX_REQUEST_ID_LENGTH]

        request.state.request_id = request_id

        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        return response


def get_request_id(request: Request) -> str:
    """
    Request ID from request state, or "no-request-id" when the middleware
    did not run (e.g. in isolated dependency tests).
    """
    return getattr(request.state, "request_id", "no-request-id")

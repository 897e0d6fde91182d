"""
Request-ID Middleware.

Setzt pro Request eine X-Request-ID (aus Header oder neu generiert),
schreibt sie in Response-Header und request.state und stellt sie über
request_id_var den Log-Records zur Verfügung.
"""

import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.logging_config import request_id_var

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware für Request-Korrelations-ID.

    Liest X-Request-ID aus dem Request oder erzeugt eine UUID.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

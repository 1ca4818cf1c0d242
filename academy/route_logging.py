from __future__ import annotations

import uuid
from contextvars import ContextVar

from fastapi.routing import APIRoute
from starlette.requests import Request


current_endpoint: ContextVar[str] = ContextVar('current_endpoint', default='background')
current_request_id: ContextVar[str] = ContextVar('current_request_id', default='-')


class EndpointNameRoute(APIRoute):
    """Tags every log line emitted while a route runs with its endpoint and request id."""

    def get_route_handler(self):
        original_handler = super().get_route_handler()

        async def custom_handler(request: Request):
            request_id = request.headers.get('x-request-id') or uuid.uuid4().hex[:12]
            endpoint_token = current_endpoint.set(f"{request.method} {self.path}")
            request_token = current_request_id.set(request_id)
            try:
                response = await original_handler(request)
                response.headers['X-Request-ID'] = request_id
                return response
            finally:
                current_request_id.reset(request_token)
                current_endpoint.reset(endpoint_token)

        return custom_handler

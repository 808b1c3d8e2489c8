import time
import logging
from collections import defaultdict
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class RateLimitMiddleware:
    """Sliding-window limit on tool calls per client address.

    Only POSTs under `path_prefix` count; health and tool listing stay
    unmetered. Rejected calls still get the tool response envelope.
    """

    def __init__(self, app, max_requests=60, window=60, path_prefix="/tools/", clock=time.monotonic):
        self.app = app
        self.max_requests = max_requests
        self.window = window
        self.path_prefix = path_prefix
        self.clock = clock
        self.requests = defaultdict(list)

    async def __call__(self, scope, receive, send):
        if (
            scope["type"] != "http"
            or scope.get("method") != "POST"
            or not scope.get("path", "").startswith(self.path_prefix)
        ):
            return await self.app(scope, receive, send)

        client = scope.get("client")
        client_ip = client[0] if client else "unknown"
        now = self.clock()

        self.requests[client_ip] = [t for t in self.requests[client_ip] if now - t < self.window]

        if len(self.requests[client_ip]) >= self.max_requests:
            logger.warning(f"[RATELIMIT] {client_ip} exceeded {self.max_requests} tool calls per {self.window}s")
            response = JSONResponse(
                {
                    "content": [{"type": "text", "text": "Rate limit exceeded: Please wait a moment and try again"}],
                    "isError": True,
                },
                status_code=429,
            )
            await response(scope, receive, send)
            return

        self.requests[client_ip].append(now)
        await self.app(scope, receive, send)

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from slotswap.config import get_settings


class HTTPLogMiddleware(BaseHTTPMiddleware):
    """DEBUG-level request log with the acting profile, enabled by REQUEST_DEBUG."""

    def __init__(self, app, logger_name: str = "slotswap.http"):
        super().__init__(app)
        self._log = logging.getLogger(logger_name)
        self._profile_header = get_settings().auth.profile_header

    async def dispatch(self, request: Request, call_next):
        started = time.monotonic()
        line = "method=%s path=%s actor=%s" % (
            request.method,
            request.url.path,
            request.headers.get(self._profile_header, "-"),
        )
        self._log.debug("http.request start %s", line)
        try:
            response = await call_next(request)
        except Exception as e:
            self._log.warning("http.request error %s dur_ms=%d err=%r", line, _elapsed_ms(started), e)
            raise
        self._log.debug("http.request end %s status=%s dur_ms=%d", line, response.status_code, _elapsed_ms(started))
        return response


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)

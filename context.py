"""Request-scoped values threaded through every service and gateway call."""
import uuid
from dataclasses import dataclass
from typing import Optional

TRACE_HEADER = "X-Trace-ID"
USER_HEADER = "X-User-ID"
AUTHORIZATION_HEADER = "Authorization"


@dataclass(frozen=True)
class RequestContext:
    """Caller identity and correlation data for one inbound request.

    `authorization` is forwarded verbatim to downstream services that act on
    the caller's behalf. `user_id` is the identity already verified upstream.
    """

    trace_id: str
    authorization: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def new(cls, trace_id: Optional[str] = None, authorization: Optional[str] = None,
            user_id: Optional[str] = None) -> "RequestContext":
        return cls(
            trace_id=trace_id or uuid.uuid4().hex,
            authorization=authorization,
            user_id=user_id,
        )

    def trace_headers(self) -> dict:
        return {TRACE_HEADER: self.trace_id}

    def auth_headers(self) -> dict:
        headers = self.trace_headers()
        if self.authorization:
            headers[AUTHORIZATION_HEADER] = self.authorization
        return headers

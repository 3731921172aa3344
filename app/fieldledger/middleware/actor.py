from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.fieldledger.core.context import build_request_context
from app.fieldledger.core.security import decode_token


class ActorContextMiddleware(BaseHTTPMiddleware):
    """Best-effort actor resolution for logging; routes still authenticate via deps."""

    async def dispatch(self, request: Request, call_next):
        request.state.user_id = None
        request.state.role = None
        request.state.username = None

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.lower().startswith("bearer "):
            token = auth_header.split(" ", 1)[1]
            try:
                payload = decode_token(token)
            except JWTError:
                payload = {}
            request.state.user_id = payload.get("sub")
            request.state.role = payload.get("role")
            request.state.username = payload.get("username")

        request.state.context = build_request_context(
            user_id=request.state.user_id,
            role=request.state.role,
            username=request.state.username,
            trace_id=getattr(request.state, "trace_id", ""),
        )
        return await call_next(request)

from dataclasses import dataclass

from app.fieldledger.core.security import is_manager


@dataclass(frozen=True)
class RequestContext:
    user_id: str | None
    role: str | None
    username: str | None
    trace_id: str

    @property
    def is_manager(self) -> bool:
        return is_manager(self.role)


def build_request_context(
    *,
    user_id: str | None,
    role: str | None,
    username: str | None,
    trace_id: str,
) -> RequestContext:
    return RequestContext(user_id=user_id, role=role, username=username, trace_id=trace_id)

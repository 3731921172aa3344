from fastapi import Depends, Request
from jose import JWTError
from pydantic import ValidationError

from app.fieldledger.core.context import RequestContext, build_request_context
from app.fieldledger.core.error_catalog import AppError, ErrorCatalog
from app.fieldledger.core.security import TokenData, decode_token, oauth2_scheme


def get_current_token_data(token: str | None = Depends(oauth2_scheme)) -> TokenData:
    if not token:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    try:
        payload = decode_token(token)
        return TokenData(**payload)
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc


def require_request_context(
    request: Request,
    token_data: TokenData = Depends(get_current_token_data),
) -> RequestContext:
    context = build_request_context(
        user_id=token_data.sub,
        role=token_data.role,
        username=token_data.username,
        trace_id=getattr(request.state, "trace_id", ""),
    )
    request.state.context = context
    return context


def require_manager(context: RequestContext = Depends(require_request_context)) -> RequestContext:
    if not context.is_manager:
        raise AppError(ErrorCatalog.PERMISSION_DENIED)
    return context


def get_save_guards(request: Request):
    return request.app.state.save_guards


def get_notifier(request: Request):
    return getattr(request.app.state, "notifier", None)


def get_approval_gate(request: Request):
    return getattr(request.app.state, "approval_gate", None)


__all__ = [
    "get_current_token_data",
    "require_request_context",
    "require_manager",
    "get_save_guards",
    "get_notifier",
    "get_approval_gate",
]

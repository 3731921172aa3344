from fastapi import FastAPI

from app.fieldledger.api import api_router
from app.fieldledger.core.config import settings
from app.fieldledger.core.errors import setup_exception_handlers
from app.fieldledger.core.logging import configure_logging
from app.fieldledger.middleware.actor import ActorContextMiddleware
from app.fieldledger.middleware.observability import ObservabilityMiddleware
from app.fieldledger.middleware.trace import TraceIdMiddleware
from app.fieldledger.services.external import LoggingNotifier
from app.fieldledger.services.guard import GuardRegistry


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.state.save_guards = GuardRegistry()
    app.state.notifier = LoggingNotifier()
    app.state.approval_gate = None
    app.add_middleware(ActorContextMiddleware)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()

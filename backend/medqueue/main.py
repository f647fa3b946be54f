import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from medqueue.config import Settings, get_settings
from medqueue.database import DataStore
from medqueue.exceptions import WebhookError
from medqueue.schemas.webhook import WebhookErrorResponse
from medqueue.routers import profiles, session, webhooks
from medqueue.services.profiles import ProfileResolver
from medqueue.services.role_data import RoleDataAccessor
from medqueue.session import SessionRegistry

logger = logging.getLogger(__name__)


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Session payloads are per-user; never let the browser cache them."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0"
        response.headers["Expires"] = "0"
        response.headers["Pragma"] = "no-cache"
        return response


async def webhook_error_handler(request: Request, exc: WebhookError):
    body = WebhookErrorResponse(error=exc.message, code=exc.code)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def create_app(settings: Settings = None, store: DataStore = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = store or DataStore.from_url(settings.database_url, echo=settings.database_echo)
    accessor = RoleDataAccessor(store)
    resolver = ProfileResolver(store, accessor)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: create tables then seed pre-configured profiles
        await store.create_all()
        seeded = await resolver.seed_profiles(settings.preconfigured_profiles)
        if seeded:
            logger.info("Seeded %d pre-configured profiles", seeded)
        yield
        # Shutdown
        await store.dispose()

    app = FastAPI(
        title="MedQueue",
        description="Role-based healthcare scheduling backend",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.sessions = SessionRegistry(resolver, accessor, max_sessions=settings.session_cache_size)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(NoCacheMiddleware)
    app.add_exception_handler(WebhookError, webhook_error_handler)

    app.include_router(session.router, prefix="/api/session", tags=["Session"])
    app.include_router(profiles.router, prefix="/api/profile", tags=["Profile"])
    app.include_router(webhooks.router, prefix="/api/webhooks", tags=["Webhooks"])

    @app.get("/api/health")
    async def health_check():
        return {"status": "healthy", "service": "medqueue"}

    return app

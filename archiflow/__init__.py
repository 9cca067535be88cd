from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .auth import FirebaseIdentityVerifier, IdentityVerifier
from .config import Settings, settings as default_settings
from .errors import register_error_handlers
from .firebase import init_firebase
from .gate import AccessGate
from .routes.ai import router as ai_router
from .routes.calls import router as calls_router
from .routes.health import router as health_router
from .routes.projects import router as projects_router
from .routes.templates import router as templates_router
from .routes.users import router as users_router
from .services.database import Database, InMemoryDatabase, RealtimeDatabase
from .services.ledger import CreditLedger
from .services.openrouter import OpenRouterClient
from .services.ratelimit import FixedWindowRateLimiter
from .utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if app.state.ai_client is not None:
        await app.state.ai_client.aclose()


def create_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    verifier: IdentityVerifier | None = None,
    limiter: FixedWindowRateLimiter | None = None,
    ai_client: OpenRouterClient | None = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level, json_output=settings.log_json)

    if database is None or verifier is None:
        firebase_app = init_firebase(settings)
        if verifier is None and firebase_app is not None:
            verifier = FirebaseIdentityVerifier(firebase_app)
        if database is None:
            if settings.use_in_memory_backends:
                database = InMemoryDatabase()
            elif firebase_app is not None and settings.firebase_database_url:
                database = RealtimeDatabase(firebase_app)

    if limiter is None:
        limiter = FixedWindowRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_ms=settings.rate_limit_window_ms,
            max_tracked=settings.rate_limit_max_tracked,
        )
    if ai_client is None:
        ai_client = OpenRouterClient(
            api_key=settings.openrouter_api_key,
            url=settings.openrouter_url,
            referer=settings.openrouter_referer,
            title=settings.openrouter_title,
            timeout=settings.ai_timeout_seconds,
        )

    ledger = CreditLedger(database, settings.default_credits_total) if database is not None else None

    app = FastAPI(title="Archiflow API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.ai_client = ai_client
    app.state.gate = AccessGate(verifier, limiter, ledger, timeout=settings.upstream_timeout_seconds)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(users_router, prefix="/api", tags=["users"])
    app.include_router(projects_router, prefix="/api", tags=["projects"])
    app.include_router(calls_router, prefix="/api", tags=["calls"])
    app.include_router(templates_router, prefix="/api", tags=["templates"])
    app.include_router(ai_router, prefix="/api", tags=["ai"])

    logger.info(
        "App created",
        database="connected" if database is not None else "not configured",
        auth="configured" if verifier is not None else "not configured",
        ai="configured" if ai_client.configured else "not configured",
    )
    return app


app = create_app()

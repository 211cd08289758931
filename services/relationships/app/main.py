import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.config import Settings
from app.database import dispose_db
from app.dependencies import RelationshipContainer, build_container
from app.messaging.router import router as messaging_router
from app.rate_limit import limiter
from app.social_graph.router import router as social_router
from shared.middleware.error_handler import error_envelope_middleware
from shared.middleware.request_id import request_id_middleware

logger = logging.getLogger(__name__)


# ── OpenAPI metadata ──────────────────────────────────────────────────────────

_DESCRIPTION = """
## LinkUp Relationships Service

Owns who-may-do-what between two users of the LinkUp platform:

* **Follows** — unidirectional follow edges, with follow / unfollow / toggle.
* **Blocks** — either user may block the other. A block removes follow edges in
  both directions and shuts down following and messaging until it is lifted.
* **Permissions** — `GET /users/{user_id}/relationship` returns the live set of
  actions the caller may take toward a user (follow, block, message, ...).
* **Conversations** — a one-to-one conversation can only be opened between mutual
  followers, exists at most once per pair, and survives later unfollows.

### Authentication
All endpoints except `/health` require:
```
Authorization: Bearer <access_token>
```

### Error shape
Domain errors return FastAPI's standard body:
```json
{ "detail": "Human-readable message" }
```
Unexpected failures return `500` with an `{"error": {...}, "request_id": ...}` envelope.

### Rate limits
Follow actions are limited to 50 per hour. `429 Too Many Requests` is returned when
the limit is exceeded.
"""

_TAGS_METADATA = [
    {
        "name": "social-graph",
        "description": (
            "Follows and blocks. Every mutation is idempotent: repeating it reports "
            "`changed: false` and emits no event."
        ),
    },
    {
        "name": "messaging",
        "description": (
            "Get-or-create one-to-one conversations. Message storage lives in the "
            "messaging service; this service only decides whether a thread may exist."
        ),
    },
]


# ── Health schema ─────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    service: str


# ── App factory ───────────────────────────────────────────────────────────────

def get_settings() -> Settings:
    return Settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    container: RelationshipContainer = app.state.container
    container.notifier.start()
    logger.info("Relationships service started (storage=%s)", app.state.settings.storage_backend)
    yield
    await container.notifier.stop()
    await dispose_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(
        title="LinkUp Relationships Service",
        version="1.0.0",
        description=_DESCRIPTION,
        openapi_tags=_TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = build_container(settings)

    # Attach rate limiter state before middleware
    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Middleware is applied in reverse-registration order (last added = outermost).
    # CORS must be outermost so ALL responses (including 429s) carry CORS headers.
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(error_envelope_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(social_router, prefix="/api/v1")
    app.include_router(messaging_router, prefix="/api/v1")

    @app.get("/health", response_model=HealthResponse, tags=["health"], include_in_schema=True)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="relationships")

    return app


app = create_app()

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import CommissionError, STATUS_BY_KIND
from app.core.events import COMMISSION_EVENTS, event_bus
from app.api import commissions, agent_portal, agents

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def init_database():
    """Create tables (if enabled) and seed the default commission rules."""
    from app.core.database import engine, Base, SessionLocal
    import app.models as _models  # noqa: F401  registers every table on Base.metadata
    from app.services.rules import seed_default_rules

    if settings.AUTO_CREATE_TABLES:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)

    if settings.SEED_DEMO_DATA:
        db = SessionLocal()
        try:
            seed_default_rules(db)
        except Exception as e:
            logger.error(f"Error seeding default rules: {e}")
            db.rollback()
        finally:
            db.close()


def init_event_consumers():
    """Attach the audit and notification consumers to the event bus."""
    from app.core.database import SessionLocal
    from app.services.audit import AuditSink
    from app.services.notifications import CommissionNotifier

    event_bus.clear()
    event_bus.subscribe(AuditSink(SessionLocal))
    event_bus.subscribe(CommissionNotifier(), kinds=COMMISSION_EVENTS)
    logger.info("Audit and notification consumers attached")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_database()
    init_event_consumers()
    yield
    event_bus.clear()


# Disable API docs in production
docs_url = "/docs" if settings.ENVIRONMENT != "production" else None
redoc_url = "/redoc" if settings.ENVIRONMENT != "production" else None

app = FastAPI(
    title=settings.APP_NAME,
    description="Renta - agent commission rules, ledger and payouts",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
)


@app.exception_handler(CommissionError)
async def commission_error_handler(request: Request, exc: CommissionError):
    status_code = STATUS_BY_KIND.get(exc.kind, 400)
    if status_code >= 409:
        logger.info(f"{request.method} {request.url.path}: {exc.kind.value}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": exc.kind.value},
    )


# Global exception handler - always return JSON (never plain text)
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


# CORS - local dev + configured frontend
allowed_origins = ["http://localhost:3000", "http://frontend:3000"]
frontend_url = settings.FRONTEND_URL or ""
if frontend_url and frontend_url not in allowed_origins:
    allowed_origins.append(frontend_url)
    if not frontend_url.startswith("https"):
        allowed_origins.append(frontend_url.replace("http://", "https://"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "renta-agent-commissions", "version": "1.0.0"}


@app.get("/")
def root():
    return {"message": settings.APP_NAME, "version": "1.0.0", "docs": docs_url}


app.include_router(commissions.router)
app.include_router(agent_portal.router)
app.include_router(agents.router)
app.include_router(agents.public_router)

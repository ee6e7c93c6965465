import asyncio
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select

from lending.core.config import settings
from lending.core.logging import setup_logging, get_logger, request_id_ctx
from lending.core.security import hash_password
from lending.db.session import engine, session_scope
from lending.db.models import Base, User, UserRole
from lending.services.expiry import expiry_sweep_loop

logger = get_logger("lending.main")

_sweep_task: asyncio.Task | None = None


async def seed_admin() -> None:
    """Create the built-in admin account if it doesn't exist."""
    async with session_scope() as db:
        result = await db.execute(select(User).where(User.email == settings.ADMIN_EMAIL))
        if result.scalar_one_or_none():
            logger.info(f"Built-in admin already exists: {settings.ADMIN_EMAIL}")
            return
        db.add(
            User(
                email=settings.ADMIN_EMAIL,
                hashed_password=hash_password(settings.ADMIN_PASSWORD),
                full_name="System Administrator",
                role=UserRole.ADMIN,
                is_built_in=True,
            )
        )
        logger.info(f"Built-in admin created: {settings.ADMIN_EMAIL}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: logging, tables, admin, expiry sweep. Shutdown: stop the sweep."""
    global _sweep_task

    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Tables are created in place; production schemas are migrated separately.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await seed_admin()

    _sweep_task = asyncio.create_task(expiry_sweep_loop())
    logger.info("Background expiry sweep scheduled")

    yield

    if _sweep_task:
        _sweep_task.cancel()
        try:
            await _sweep_task
        except asyncio.CancelledError:
            pass
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "## Lending Service\n\n"
        "Loans and reservations for a lending catalog:\n\n"
        "- **Loans** – borrow, return and renew copies\n"
        "- **Reservations** – a first-come, first-served queue per item; a freed copy is "
        "held for the oldest waiting reservation for two days\n"
        "- **Items** – copy counts; editing them rebalances the queue\n"
        "- **Borrowers** – accounts, loan history and fees\n\n"
        "Borrowers confirm every loan and reservation action with their password. "
        "Catalog and borrower management require a staff **Bearer JWT** "
        "from `POST /api/v1/auth/login`."
    ),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Application health checks"},
        {"name": "Authentication", "description": "Staff login and logout"},
        {"name": "Items", "description": "Lendable items and their copy counts"},
        {"name": "Borrowers", "description": "Borrowers, their loans and reservations"},
        {"name": "Loans", "description": "Borrow, return and renew"},
        {"name": "Reservations", "description": "Reserve, cancel and expire"},
    ],
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    req_id = str(uuid.uuid4())[:8]
    request_id_ctx.set(req_id)

    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception:
        # Engine defects (InvalidStateError) and other unhandled errors end up here.
        logger.exception(f"{request.method} {request.url.path} -> unhandled error")
        raise
    duration = time.time() - start_time

    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} "
        f"({duration:.3f}s)"
    )

    response.headers["X-Request-ID"] = req_id
    return response


@app.get("/health", tags=["Health"], summary="Health check")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


from lending.api.v1.endpoints.auth import router as auth_router  # noqa: E402
from lending.api.v1.endpoints.items import router as items_router  # noqa: E402
from lending.api.v1.endpoints.borrowers import router as borrowers_router  # noqa: E402
from lending.api.v1.endpoints.loans import router as loans_router  # noqa: E402
from lending.api.v1.endpoints.reservations import router as reservations_router  # noqa: E402

app.include_router(auth_router, prefix="/api/v1")
app.include_router(items_router, prefix="/api/v1")
app.include_router(borrowers_router, prefix="/api/v1")
app.include_router(loans_router, prefix="/api/v1")
app.include_router(reservations_router, prefix="/api/v1")

import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.config import DB_SCHEMA, LOG_LEVEL
from nine_worlds.database import AsyncSessionLocal, Base, engine
from nine_worlds.limiter import limiter
# models register their tables on Base.metadata
from nine_worlds.models import (  # noqa: F401
    admin_log_model,
    comment_model,
    library_model,
    novel_model,
    reaction_model,
    statistics_model,
    user_model,
)
from nine_worlds.models.user_model import DEFAULT_ROLES, UserRole
from nine_worlds.routes import admin_routes, auth, comment_routes, library_routes, novel_routes, search_routes
from nine_worlds.services.permissions import AuthorizationError

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Nine Worlds API")

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests. Please slow down."}
    )


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": exc.message})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(novel_routes.router)
app.include_router(comment_routes.router)
app.include_router(library_routes.router)
app.include_router(search_routes.router)
app.include_router(admin_routes.router)


async def seed_roles(session: AsyncSession) -> None:
    """Insert any missing reserved roles. Existing rows are left alone."""
    existing = set((await session.execute(select(UserRole.id))).scalars().all())
    missing = [r for r in DEFAULT_ROLES if r[0] not in existing]
    for role_id, name, description in missing:
        session.add(UserRole(id=role_id, name=name, description=description))
    if missing:
        await session.commit()
        logger.info("Seeded roles: %s", ", ".join(name for _, name, _ in missing))


@app.on_event("startup")
async def on_startup():
    # one retry so a momentary DB disconnect doesn't crash the app
    for attempt in range(2):
        try:
            async with engine.begin() as conn:
                if DB_SCHEMA:
                    await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{DB_SCHEMA}"'))
                await conn.run_sync(Base.metadata.create_all)
            async with AsyncSessionLocal() as session:
                await seed_roles(session)
            break
        except Exception:
            if attempt == 0:
                logger.warning("DB init failed, retrying once", exc_info=True)
                await asyncio.sleep(0.5)
            else:
                # tables should already exist from previous runs
                logger.exception("Skipping DB init")

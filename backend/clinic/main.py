# clinic/main.py
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import get_cipher, get_settings, parse_origins
from .db import close_pool, make_pool, open_pool
from .logging_config import setup_logging
from .routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Missing ENCRYPTION_SECRET fails here, before any request is served
    settings = get_settings()
    setup_logging(settings.log_level)
    get_cipher()

    pool = make_pool(settings)
    open_pool(pool)
    app.state.pool = pool
    try:
        yield
    finally:
        close_pool(pool)


app = FastAPI(title="psyclinic-backend", lifespan=lifespan)

# ---------- CORS ----------
# Read allowed origins from env; for dev: http://localhost:3000
origins = parse_origins(os.getenv("CORS_ORIGINS", "http://localhost:3000"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,                # explicit origins (no "*")
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(router)

# ---------- Health ----------
@app.get("/health")
def health(request: Request):
    # Simple DB round-trip to prove connectivity and time source
    try:
        with request.app.state.pool.connection() as conn, conn.cursor() as cur:
            cur.execute("select now()")
            return {"status": "ok", "db_time_utc": cur.fetchone()[0].isoformat()}
    except Exception:
        logger.exception("Health check failed")
        raise HTTPException(status_code=503, detail="Database unavailable")

@app.get("/healthz")
def healthz(request: Request):
    # Alias commonly used by probes
    return health(request)

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi import _rate_limit_exceeded_handler

from .settings import settings
from .routers import curriculum, quiz
from .services.cache import CurriculumCache
from .services.db import document_store
from .services.hierarchy import curriculum_source
from .services.store import DocumentNotFoundError, DocumentStoreError

# ---------- logging ----------
logger.remove()
logger.add(
    lambda msg: print(msg, end=""),
    format="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {message}",
    level=settings.LOG_LEVEL,
)

# ---------- lifespan: store + curriculum cache ----------
@asynccontextmanager
async def lifespan(app: FastAPI):
    store = document_store()
    cache = CurriculumCache(curriculum_source(store))
    app.state.store = store
    app.state.cache = cache
    cache.start()
    try:
        yield
    finally:
        await cache.stop()
        logger.info("[cache] stopped")

# ---------- app / limiter ----------
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT])
app = FastAPI(title="Curriculum Admin API", version="1.0.0", lifespan=lifespan)
app.state.limiter = limiter

# ---------- CORS ----------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*", "Authorization", "Content-Type", "X-Admin-Id"],
)

# SlowAPI middleware + handler
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

@app.exception_handler(DocumentStoreError)
async def document_store_error(request: Request, exc: DocumentStoreError):
    logger.warning(f"[store] {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": f"Document store error: {exc}"})

@app.exception_handler(DocumentNotFoundError)
async def document_not_found(request: Request, exc: DocumentNotFoundError):
    return JSONResponse(status_code=404, content={"detail": f"Not found: {exc}"})

# ---------- health ----------
@app.get("/health")
def health(request: Request):
    cache: CurriculumCache = request.app.state.cache
    return {
        "ok": True,
        "mock": settings.MOCK_MODE,
        "rate_limit": settings.RATE_LIMIT,
        "loading": cache.is_loading,
        "grades": len(cache.grades),
        "quizzes": len(cache.all_quizzes),
    }

# ---------- routers ----------
app.include_router(curriculum.router, tags=["curriculum"])
app.include_router(quiz.router, tags=["quiz"])

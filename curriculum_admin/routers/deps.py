from fastapi import Header, Request

from ..services.cache import CurriculumCache
from ..services.store import DocumentStore

def get_store(request: Request) -> DocumentStore:
    return request.app.state.store

def get_cache(request: Request) -> CurriculumCache:
    return request.app.state.cache

def admin_id(x_admin_id: str | None = Header(default=None)) -> str:
    return (x_admin_id or "").strip() or "admin"

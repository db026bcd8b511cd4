from loguru import logger
from supabase import create_client, Client

from ..settings import settings
from .store import DocumentStore, MemoryDocumentStore, SupabaseDocumentStore

_supabase: Client | None = None

def supabase() -> Client:
    global _supabase
    if _supabase is None:
        _supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    return _supabase

def document_store() -> DocumentStore:
    if settings.MOCK_MODE:
        logger.info("[store] MOCK_MODE on, using in-memory document store")
        return MemoryDocumentStore()
    return SupabaseDocumentStore(
        supabase(),
        settings.DOCUMENTS_TABLE,
        poll_seconds=settings.SUBSCRIBE_POLL_SECONDS,
    )

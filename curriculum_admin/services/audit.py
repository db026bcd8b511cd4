from typing import Any, Dict, Literal, Optional

from loguru import logger

from .store import DocumentStore, doc_path, new_id, now_iso

Action = Literal["create", "update", "delete"]


async def record_admin_action(
    store: DocumentStore,
    *,
    admin_id: str,
    action: Action,
    entity: str,
    entity_id: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> str:
    log_id = new_id()
    now = now_iso()
    await store.set(doc_path("adminLogs", log_id), {
        "id": log_id,
        "adminId": admin_id,
        "action": action,
        "entity": entity,
        "entityId": entity_id,
        "metadata": metadata or {},
        "timestamp": now,
        "createdAt": now,
        "updatedAt": now,
    })
    logger.info(f"[audit] {admin_id} {action} {entity}/{entity_id}")
    return log_id

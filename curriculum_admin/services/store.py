"""
Document store adapters.

Documents are addressed by `/`-joined path segments, e.g.
`grades/g1/units/u1/lessons/l1`. A collection path is the parent path of its
documents (`grades/g1/units`). Every document handed back carries its `id`.
"""
from __future__ import annotations

import asyncio
import copy
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from loguru import logger
from supabase import Client

Listener = Callable[[List[dict]], None]
Unsubscribe = Callable[[], Any]


class DocumentStoreError(RuntimeError):
    pass


class DocumentNotFoundError(LookupError):
    pass


def doc_path(*segments: str) -> str:
    return "/".join(segments)


def parent_of(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex[:20]


def _with_id(path: str, data: Mapping[str, Any]) -> dict:
    return {"id": path.rsplit("/", 1)[-1], **data}


class DocumentStore(Protocol):
    async def get(self, path: str) -> Optional[dict]: ...
    async def list(self, collection: str) -> List[dict]: ...
    async def set(self, path: str, data: Mapping[str, Any]) -> None: ...
    async def update(self, path: str, data: Mapping[str, Any]) -> None: ...
    async def delete(self, path: str) -> None: ...
    def subscribe(self, collection: str, callback: Listener) -> Unsubscribe: ...


class MemoryDocumentStore:
    """Process-local store; listeners are called synchronously on every change."""

    def __init__(self) -> None:
        self._docs: Dict[str, dict] = {}
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def _snapshot(self, collection: str) -> List[dict]:
        return [
            _with_id(path, copy.deepcopy(data))
            for path, data in self._docs.items()
            if parent_of(path) == collection
        ]

    def _notify(self, collection: str) -> None:
        for callback in list(self._listeners.get(collection, ())):
            callback(self._snapshot(collection))

    async def get(self, path: str) -> Optional[dict]:
        data = self._docs.get(path)
        return _with_id(path, copy.deepcopy(data)) if data is not None else None

    async def list(self, collection: str) -> List[dict]:
        return self._snapshot(collection)

    async def set(self, path: str, data: Mapping[str, Any]) -> None:
        self._docs[path] = copy.deepcopy(dict(data))
        self._notify(parent_of(path))

    async def update(self, path: str, data: Mapping[str, Any]) -> None:
        if path not in self._docs:
            raise DocumentNotFoundError(path)
        self._docs[path] = {**self._docs[path], **copy.deepcopy(dict(data))}
        self._notify(parent_of(path))

    async def delete(self, path: str) -> None:
        if self._docs.pop(path, None) is not None:
            self._notify(parent_of(path))

    def subscribe(self, collection: str, callback: Listener) -> Unsubscribe:
        self._listeners[collection].append(callback)
        callback(self._snapshot(collection))

        def unsubscribe() -> None:
            if callback in self._listeners[collection]:
                self._listeners[collection].remove(callback)

        return unsubscribe


class SupabaseDocumentStore:
    """
    Documents live in one table: `path text primary key, parent text, data jsonb`.
    The client is synchronous, so every call runs in a worker thread.
    Live-listen is a polling task that pushes whenever the listing changes.
    """

    def __init__(self, client: Client, table: str, *, poll_seconds: float = 5.0) -> None:
        self._client = client
        self._table_name = table
        self._poll_seconds = poll_seconds

    def _table(self):
        return self._client.table(self._table_name)

    async def _run(self, what: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except Exception as e:
            logger.warning(f"[store] {what} failed: {e}")
            raise DocumentStoreError(f"{what} failed: {e}") from e

    async def get(self, path: str) -> Optional[dict]:
        resp = await self._run(
            f"get {path}",
            lambda: self._table().select("path,data").eq("path", path).limit(1).execute(),
        )
        rows = resp.data or []
        return _with_id(path, rows[0]["data"] or {}) if rows else None

    async def list(self, collection: str) -> List[dict]:
        resp = await self._run(
            f"list {collection}",
            lambda: self._table().select("path,data").eq("parent", collection).order("path").execute(),
        )
        return [_with_id(row["path"], row["data"] or {}) for row in (resp.data or [])]

    async def set(self, path: str, data: Mapping[str, Any]) -> None:
        row = {"path": path, "parent": parent_of(path), "data": dict(data)}
        await self._run(f"set {path}", lambda: self._table().upsert(row, on_conflict="path").execute())

    async def update(self, path: str, data: Mapping[str, Any]) -> None:
        current = await self.get(path)
        if current is None:
            raise DocumentNotFoundError(path)
        await self.set(path, {**current, **data})

    async def delete(self, path: str) -> None:
        await self._run(f"delete {path}", lambda: self._table().delete().eq("path", path).execute())

    def subscribe(self, collection: str, callback: Listener) -> Unsubscribe:
        task = asyncio.get_running_loop().create_task(self._poll(collection, callback))
        return task.cancel

    async def _poll(self, collection: str, callback: Listener) -> None:
        last: Optional[List[dict]] = None
        while True:
            try:
                docs = await self.list(collection)
            except DocumentStoreError:
                docs = last
            if docs is not None and docs != last:
                last = docs
                callback(docs)
            await asyncio.sleep(self._poll_seconds)

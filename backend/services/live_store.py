"""Live (publish/subscribe) access to the document store.

Reads are standing queries: a subscriber receives a ``loading`` snapshot, then
``ready`` (or ``error``) snapshots every time a committed write touches the
query's collection. Writes are queued on a worker pool and return a Future the
caller is free to ignore.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from config.settings import STORE_FLUSH_TIMEOUT, STORE_WRITE_WORKERS
from models.db import (
    StoreUnavailableError,
    insert_document,
    new_document_id,
    query_documents,
    update_document,
)

logger = logging.getLogger(__name__)

LOADING = "loading"
READY = "ready"
ERROR = "error"


@dataclass(frozen=True)
class CollectionQuery:
    """An equality-filtered, optionally ordered query over one collection."""

    collection: str
    where: Optional[Tuple[str, Any]] = None
    order_by: Optional[str] = None
    descending: bool = False

    def run(self) -> List[Dict[str, Any]]:
        rows = query_documents(
            self.collection,
            where=self.where,
            order_by=self.order_by,
            descending=self.descending,
        )
        return [dict(r) for r in rows]


@dataclass
class Snapshot:
    status: str
    data: List[Any] = field(default_factory=list)
    error: Optional[str] = None


class Subscription:
    """Handle returned by LiveStore.subscribe(); cancel() stops delivery."""

    def __init__(
        self,
        store: "LiveStore",
        query: CollectionQuery,
        callback: Callable[[Snapshot], None],
        transform: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ):
        self.id = uuid.uuid4().hex
        self.query = query
        self._store = store
        self._callback = callback
        self._transform = transform
        self._lock = threading.Lock()
        self.active = True
        self.state = Snapshot(LOADING)

    def cancel(self) -> None:
        with self._lock:
            if not self.active:
                return
            self.active = False
        self._store._remove(self)

    def _convert(self, rows: List[Dict[str, Any]]) -> List[Any]:
        if self._transform is None:
            return rows
        return [self._transform(r) for r in rows]

    def _deliver(self, snapshot: Snapshot) -> None:
        with self._lock:
            if not self.active:
                return
            self.state = snapshot
        try:
            self._callback(snapshot)
        except Exception:
            logger.exception(f"Subscriber {self.id} failed to handle {snapshot.status} snapshot")


class LiveStore:
    """Queues writes on a worker pool and fans committed changes out to subscribers."""

    def __init__(self, max_workers: int = STORE_WRITE_WORKERS):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="store-writer")
        self._lock = threading.RLock()
        self._subscriptions: Dict[str, Subscription] = {}
        self._pending: set = set()
        self._closed = False

    # --- subscriptions ---

    def subscribe(
        self,
        query: CollectionQuery,
        callback: Callable[[Snapshot], None],
        transform: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> Subscription:
        sub = Subscription(self, query, callback, transform)
        with self._lock:
            self._subscriptions[sub.id] = sub
        sub._deliver(Snapshot(LOADING))
        # The first load is queued behind pending writes so it observes them.
        self._submit(self._refresh, sub)
        logger.debug(f"Subscription {sub.id} opened on {query.collection}")
        return sub

    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(sub.id, None)
        logger.debug(f"Subscription {sub.id} cancelled")

    def _subscribers_for(self, collection: str) -> List[Subscription]:
        with self._lock:
            return [s for s in self._subscriptions.values() if s.query.collection == collection]

    def _refresh(self, sub: Subscription) -> None:
        if not sub.active:
            return
        try:
            rows = sub.query.run()
            sub._deliver(Snapshot(READY, data=sub._convert(rows)))
        except Exception as e:
            logger.error(f"Live query on {sub.query.collection} failed: {e}")
            sub._deliver(Snapshot(ERROR, data=list(sub.state.data), error=str(e)))

    def _notify(self, collection: str) -> None:
        for sub in self._subscribers_for(collection):
            self._refresh(sub)

    def _notify_error(self, collection: str, error: Exception) -> None:
        for sub in self._subscribers_for(collection):
            # Keep the last good data; the failed write changed nothing.
            sub._deliver(Snapshot(ERROR, data=list(sub.state.data), error=str(error)))

    # --- writes ---

    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        if self._closed:
            raise StoreUnavailableError("Live store is shut down")
        future = self._executor.submit(fn, *args)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _write(self, collection: str, action: str, fn: Callable[[], Any]) -> Any:
        try:
            result = fn()
        except Exception as e:
            logger.error(f"{action} on {collection} failed: {e}")
            self._notify_error(collection, e)
            raise
        logger.info(f"{action} on {collection} committed")
        self._notify(collection)
        return result

    def add_document_nonblocking(self, collection: str, data: Mapping[str, Any]) -> Tuple[str, Future]:
        """Queue an insert. Returns the new document id and the write's Future."""
        doc_id = new_document_id()
        payload = dict(data)
        future = self._submit(
            self._write,
            collection,
            f"add {doc_id}",
            lambda: insert_document(collection, payload, doc_id=doc_id),
        )
        return doc_id, future

    def update_document_nonblocking(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Future:
        """Queue a field update. The Future resolves to False when no row matched."""
        payload = dict(fields)
        conditions = dict(expected) if expected else None
        return self._submit(
            self._write,
            collection,
            f"update {doc_id}",
            lambda: update_document(collection, doc_id, payload, expected=conditions),
        )

    def add_document(self, collection: str, data: Mapping[str, Any]) -> str:
        """Insert and wait for the commit. Store errors propagate to the caller."""
        doc_id, future = self.add_document_nonblocking(collection, data)
        future.result()
        return doc_id

    # --- lifecycle ---

    def flush(self, timeout: Optional[float] = STORE_FLUSH_TIMEOUT) -> bool:
        """Wait for queued work. Returns False when the timeout expired first."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        self.flush()
        with self._lock:
            subs = list(self._subscriptions.values())
            self._closed = True
        for sub in subs:
            sub.cancel()
        self._executor.shutdown(wait=True)


# Global store instance
_live_store: Optional[LiveStore] = None
_live_store_lock = threading.Lock()


def get_live_store() -> LiveStore:
    """Get the global live store instance."""
    global _live_store
    with _live_store_lock:
        if _live_store is None:
            _live_store = LiveStore()
        return _live_store


def reset_live_store() -> None:
    """Shut the global store down; the next get_live_store() builds a fresh one."""
    global _live_store
    with _live_store_lock:
        store, _live_store = _live_store, None
    if store is not None:
        store.shutdown()

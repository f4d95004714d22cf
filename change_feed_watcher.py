"""
Turns the change feed of the translations collection into download work.
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, Tuple

from errors import InvalidLocator, SubscriptionError
from work_items import BlobLocator, WorkItem

DEFAULT_RESULT_FIELD = "audioPath"


class ChangeFeedWatcher:
    """Dispatches each expected document at most once, as soon as its result
    field is filled in.

    The feed keeps running after the batch is done; the owning phase calls
    stop() once the dispatcher reports completion or a fatal error.
    """

    def __init__(
        self,
        store,
        collection: str,
        dispatcher,
        resolve_locator: Callable[[str], BlobLocator],
        result_field: str = DEFAULT_RESULT_FIELD,
    ):
        self.store = store
        self.collection = collection
        self.dispatcher = dispatcher
        self.resolve_locator = resolve_locator
        self.result_field = result_field
        self.dispatched = set()
        self._handle = None
        self._started = False
        self._stopped = False
        self._lock = threading.Lock()

    def start(self):
        with self._lock:
            if self._started:
                raise RuntimeError(f"Already watching {self.collection}")
            self._started = True
        logging.info(f"Watching {self.collection} for {len(self.dispatcher.expected_ids)} results")
        handle = self.store.subscribe(self.collection, self.on_change, self.on_error)
        with self._lock:
            if self._stopped:
                release_now = True
            else:
                self._handle = handle
                release_now = False
        if release_now:
            self.store.unsubscribe(handle)

    def on_change(self, changes: Iterable[Tuple[str, Dict[str, Any]]]):
        with self._lock:
            if self._stopped:
                return
            for doc_id, fields in changes:
                if doc_id in self.dispatched:
                    continue
                if doc_id not in self.dispatcher.expected_ids:
                    logging.debug(f"Ignoring change to unrelated document {doc_id}")
                    continue
                reference = (fields or {}).get(self.result_field)
                if reference is None:
                    continue
                self.dispatched.add(doc_id)
                try:
                    locator = self.resolve_locator(reference)
                except InvalidLocator as e:
                    logging.warning(f"Dropping {doc_id}: {e}")
                    self.dispatcher.reject(doc_id, str(e))
                    continue
                self.dispatcher.submit(WorkItem(id=doc_id, locator=locator))

    def on_error(self, error: Exception):
        logging.error(f"Change feed for {self.collection} failed: {error}")
        self.dispatcher.abort(SubscriptionError(f"Change feed for {self.collection} failed: {error}"))

    def stop(self):
        """Release the subscription. Only the first call has an effect."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            handle, self._handle = self._handle, None
        if handle is not None:
            logging.debug(f"Unsubscribing from {self.collection}")
            self.store.unsubscribe(handle)

import threading

import pytest
from openpyxl import Workbook

from errors import TransientStoreError
from work_items import parse_gs_uri

BUCKET = "demo-bucket"


def audio_uri(doc_id):
    return f"gs://{BUCKET}/tts/{doc_id}.mp3"


class FakeSubscription:
    def __init__(self, collection, on_change, on_error):
        self.collection = collection
        self.on_change = on_change
        self.on_error = on_error
        self.thread = None


class FakeDocumentStore:
    """In-memory document store.

    ``feed`` is a list of notification batches, each a list of
    (doc_id, fields) pairs, delivered one at a time on a single thread after
    subscribe() is called. ``feed_error`` is reported after the batches.
    """

    def __init__(self, failing_ids=(), feed=None, feed_error=None, subscribe_error=None):
        self.documents = {}
        self.subscribe_error = subscribe_error
        self.writes = []
        self.failing_ids = set(failing_ids)
        self.feed = list(feed or [])
        self.feed_error = feed_error
        self.subscriptions = []
        self.unsubscribed = []
        self._lock = threading.Lock()

    def write(self, collection, doc_id, fields, merge=True):
        if doc_id in self.failing_ids:
            raise TransientStoreError(f"write rejected for {doc_id}")
        with self._lock:
            self.writes.append((collection, doc_id, dict(fields), merge))
            document = self.documents.setdefault((collection, doc_id), {})
            if not merge:
                document.clear()
            document.update(fields)

    def subscribe(self, collection, on_change, on_error):
        if self.subscribe_error:
            raise self.subscribe_error
        subscription = FakeSubscription(collection, on_change, on_error)
        self.subscriptions.append(subscription)
        if self.feed or self.feed_error:
            subscription.thread = threading.Thread(
                target=self.deliver_feed, args=(subscription,), daemon=True, name="Feed"
            )
            subscription.thread.start()
        return subscription

    def deliver_feed(self, subscription):
        for changes in self.feed:
            subscription.on_change(changes)
        if self.feed_error:
            subscription.on_error(self.feed_error)

    def unsubscribe(self, handle):
        self.unsubscribed.append(handle)


class FakeBlobStore:
    def __init__(self, blobs=None, failing=()):
        self.blobs = dict(blobs or {})
        self.failing = set(failing)
        self.fetches = []
        self._lock = threading.Lock()

    def resolve_locator(self, uri):
        return parse_gs_uri(uri)

    def fetch(self, locator):
        with self._lock:
            self.fetches.append(locator.uri)
        if locator.uri in self.failing:
            raise TransientStoreError(f"fetch failed for {locator.uri}")
        return self.blobs[locator.uri]


class RecordingDispatcher:
    def __init__(self, expected_ids):
        self.expected_ids = frozenset(expected_ids)
        self.submitted = []
        self.rejected = {}
        self.aborted = []

    def submit(self, item):
        self.submitted.append(item)

    def reject(self, item_id, reason):
        self.rejected[item_id] = reason

    def abort(self, error):
        self.aborted.append(error)


@pytest.fixture
def make_workbook(tmp_path):
    def _make(rows, sheet_name="Ayta Magbukun", filename="speech.xlsx"):
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = sheet_name
        for row in rows:
            sheet.append(list(row))
        path = tmp_path / filename
        workbook.save(path)
        return path

    return _make

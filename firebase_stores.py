"""
Firestore and Cloud Storage adapters used by the batch phases.

Both wrap the firebase_admin clients behind the small surface the phases need:
document writes and a change feed on one side, blob fetches on the other.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Tuple

import firebase_admin
from firebase_admin import credentials, firestore, storage
from google.api_core.exceptions import GoogleAPIError

from completion_gate import OverCompletion
from errors import SubscriptionError, TransientStoreError
from work_items import BlobLocator, parse_gs_uri

DELIVERED_CHANGE_TYPES = ("ADDED", "MODIFIED")

Change = Tuple[str, Dict[str, Any]]


class FirestoreDocumentStore:
    def __init__(self, client):
        self.client = client

    def write(self, collection: str, doc_id: str, fields: Dict[str, Any], merge: bool = True):
        try:
            return self.client.collection(collection).document(doc_id).set(fields, merge=merge)
        except GoogleAPIError as e:
            raise TransientStoreError(f"Failed to write {collection}/{doc_id}: {e}") from e

    def subscribe(
        self,
        collection: str,
        on_change: Callable[[Iterable[Change]], None],
        on_error: Callable[[Exception], None],
    ):
        """Listen to document changes in a collection.

        Firestore delivers snapshots for one listener serially on its own
        thread. The first snapshot reports every existing document as ADDED.

        :return: The listener handle to pass to unsubscribe()
        """
        def on_snapshot(collection_snapshot, changes, read_time):
            try:
                delivered = [
                    (change.document.id, change.document.to_dict() or {})
                    for change in changes
                    if change.type.name in DELIVERED_CHANGE_TYPES
                ]
                logging.debug(f"Snapshot for {collection} at {read_time}: {len(delivered)} changed documents")
                on_change(delivered)
            except OverCompletion:
                raise
            except Exception as e:
                on_error(e)

        logging.debug(f"Subscribing to changes in collection {collection}")
        try:
            return self.client.collection(collection).on_snapshot(on_snapshot)
        except GoogleAPIError as e:
            raise SubscriptionError(f"Failed to subscribe to {collection}: {e}") from e

    def unsubscribe(self, handle):
        handle.unsubscribe()


class FirebaseBlobStore:
    def __init__(self, bucket):
        self.bucket = bucket

    def resolve_locator(self, uri: str) -> BlobLocator:
        return parse_gs_uri(uri)

    def fetch(self, locator: BlobLocator) -> bytes:
        try:
            return self.bucket.client.bucket(locator.bucket).blob(locator.name).download_as_bytes()
        except GoogleAPIError as e:
            raise TransientStoreError(f"Failed to fetch {locator.uri}: {e}") from e


def initialize_firebase(credentials_path: Path, bucket_name: str) -> Tuple[FirestoreDocumentStore, FirebaseBlobStore]:
    """Initialize the Firebase app from a service account file.

    :param credentials_path: Service account JSON
    :param bucket_name: Default Cloud Storage bucket of the project
    :return: Document store and blob store adapters
    """
    cred = credentials.Certificate(str(credentials_path))
    app = firebase_admin.initialize_app(cred, {"storageBucket": bucket_name})
    logging.debug(f"Initialized Firebase app {app.name} with bucket {bucket_name}")
    return FirestoreDocumentStore(firestore.client(app)), FirebaseBlobStore(storage.bucket(app=app))

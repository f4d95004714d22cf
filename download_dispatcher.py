"""
Downloads synthesized audio through a bounded worker pool and tracks when the
whole batch is done.
"""

import logging
import os
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from completion_gate import CompletionGate, OverCompletion
from work_items import WorkItem

AUDIO_EXTENSION = "mp3"
DEFAULT_DOWNLOAD_WORKERS = (os.cpu_count() or 1) * 2


@dataclass
class DownloadReport:
    total: int
    succeeded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)


class DownloadDispatcher:
    """Runs one blob fetch per work item and counts each item exactly once.

    The gate is sized to the expected document ids when the dispatcher is
    built, before any change notification is delivered.
    """

    def __init__(
        self,
        blob_store,
        download_directory: Path,
        expected_ids: Iterable[str],
        max_workers: int = DEFAULT_DOWNLOAD_WORKERS,
        force: bool = False,
    ):
        self.blob_store = blob_store
        self.download_directory = Path(download_directory)
        self.expected_ids = frozenset(expected_ids)
        self.force = force
        self.report = DownloadReport(total=len(self.expected_ids))
        self.gate = CompletionGate(len(self.expected_ids))
        self.error: Optional[Exception] = None
        self._lock = threading.Lock()
        self._finished = threading.Event()
        if self.gate.is_satisfied:
            self._finished.set()

        self.download_directory.mkdir(parents=True, exist_ok=True)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="Download")

    def get_file_path(self, item_id: str) -> Path:
        return self.download_directory / f"{item_id}.{AUDIO_EXTENSION}"

    def submit(self, item: WorkItem):
        logging.debug(f"Queueing download of {item.locator.uri} for {item.id}")
        future = self._executor.submit(self.download, item)
        future.add_done_callback(self.on_download_done)

    def on_download_done(self, future):
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logging.error(f"Download worker failed: {error!r}")
            self.abort(error)

    def reject(self, item_id: str, reason: str):
        with self._lock:
            self.report.failures[item_id] = reason
        try:
            self.complete_one()
        except OverCompletion as e:
            self.abort(e)
            raise

    def abort(self, error: Exception):
        with self._lock:
            if self.error is None:
                self.error = error
        self._finished.set()

    def complete_one(self):
        if self.gate.mark_one():
            logging.debug("All downloads handled")
            self._finished.set()

    def write_atomically(self, path: Path, content: bytes):
        with tempfile.NamedTemporaryFile(dir=path.parent, prefix=f".{path.stem}.", suffix=".part", delete=False) as f:
            temp_path = Path(f.name)
            f.write(content)
        try:
            os.replace(temp_path, path)
        except OSError:
            temp_path.unlink()
            raise

    def download(self, item: WorkItem):
        local_path = self.get_file_path(item.id)
        try:
            if not self.force and local_path.exists():
                logging.info(f"Skipping existing file: {local_path}")
                with self._lock:
                    self.report.skipped.append(item.id)
                return
            logging.info(f"Downloading translated text-to-speech {item.id}")
            content = self.blob_store.fetch(item.locator)
            self.write_atomically(local_path, content)
            with self._lock:
                self.report.succeeded.append(item.id)
            logging.debug(f"Saved {item.locator.uri} to {local_path}")
        except Exception as e:
            logging.error(f"Failed to download {item.id} from {item.locator.uri}: {e}")
            with self._lock:
                self.report.failures[item.id] = str(e)
        finally:
            self.complete_one()

    def wait(self, timeout: Optional[float] = None) -> DownloadReport:
        """Block until every expected item is handled or the phase is aborted.

        :param timeout: Seconds to wait, None to wait forever
        :return: DownloadReport
        :raises SubscriptionError: If the change feed failed
        :raises OverCompletion: If an item was counted more than once
        :raises TimeoutError: If the timeout elapsed first
        """
        if not self._finished.wait(timeout):
            raise TimeoutError(
                f"{self.gate.remaining} of {self.gate.target} downloads still pending after {timeout} seconds"
            )
        if self.error is not None:
            raise self.error
        return self.report

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

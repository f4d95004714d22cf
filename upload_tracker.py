"""
Uploads speech records as Firestore documents and waits for every write to be
acknowledged.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Sequence

from completion_gate import CompletionGate
from speech_records import SpeechRecord
from voices import VoiceType

DEFAULT_UPLOAD_WORKERS = 8


class UploadState(Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"


@dataclass
class UploadReport:
    total: int
    succeeded: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)


class UploadTracker:
    def __init__(
        self,
        store,
        collection: str,
        voice: VoiceType,
        max_workers: int = DEFAULT_UPLOAD_WORKERS,
    ):
        """
        :param store: Document store with a write(collection, doc_id, fields, merge) method
        :param collection: Collection the documents are written to
        :param voice: Voice settings merged into each document
        :param max_workers: Number of concurrent writes
        """
        self.store = store
        self.collection = collection
        self.voice = voice
        self.max_workers = max_workers
        self.states: Dict[str, UploadState] = {}
        self._lock = threading.Lock()

    def unique_records(self, records: Sequence[SpeechRecord]) -> List[SpeechRecord]:
        unique = {}
        for record in records:
            if record.identity in unique:
                logging.warning(f"Skipping duplicate record: {record.identity}")
                continue
            unique[record.identity] = record
        return list(unique.values())

    def set_state(self, doc_id: str, state: UploadState):
        with self._lock:
            self.states[doc_id] = state

    def write_record(self, record: SpeechRecord):
        self.set_state(record.identity, UploadState.IN_FLIGHT)
        logging.debug(f"Uploading text-to-speech document: {record.identity}")
        return self.store.write(
            self.collection,
            record.identity,
            self.voice.payload(record.target_text),
            merge=True,
        )

    def on_acknowledged(self, record: SpeechRecord, future: Future, report: UploadReport, gate: CompletionGate):
        try:
            error = future.exception()
            with self._lock:
                if error is None:
                    report.succeeded.append(record.identity)
                else:
                    report.failures[record.identity] = str(error)
            if error is None:
                logging.info(f"Uploaded document {record.identity} to {self.collection}")
            else:
                logging.error(f"Failed to upload document {record.identity} to {self.collection}: {error}")
        finally:
            self.set_state(record.identity, UploadState.DONE)
            gate.mark_one()

    def run(self, records: Sequence[SpeechRecord]) -> UploadReport:
        """Write every record and block until each write is acknowledged.

        Failed writes count as handled and are listed in the report.

        :param records: The batch to upload
        :return: UploadReport
        """
        batch = self.unique_records(records)
        report = UploadReport(total=len(batch))
        gate = CompletionGate(len(batch))
        for record in batch:
            self.set_state(record.identity, UploadState.PENDING)

        logging.info(f"Uploading {len(batch)} documents to {self.collection}")
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="Upload")
        try:
            for record in batch:
                future = executor.submit(self.write_record, record)
                future.add_done_callback(
                    lambda f, record=record: self.on_acknowledged(record, f, report, gate)
                )
            gate.wait()
        finally:
            executor.shutdown(wait=True)

        logging.info(
            f"Upload phase complete: {len(report.succeeded)} succeeded, {len(report.failures)} failed"
        )
        return report

#!/usr/bin/env python3

"""
A script to convert spreadsheet rows to speech with the Firebase Text-to-Speech extension.

Uploads one Firestore document per row, waits for the extension to fill in each
document's audio reference and downloads the resulting MP3 files.
"""

import argparse
import logging
import signal
import sys
import time
from os import environ
from pathlib import Path
from typing import Optional

from change_feed_watcher import DEFAULT_RESULT_FIELD, ChangeFeedWatcher
from download_dispatcher import DEFAULT_DOWNLOAD_WORKERS, DownloadDispatcher, DownloadReport
from errors import SubscriptionError, ValidationError
from speech_records import (
    DEFAULT_HEADER_ROWS,
    DEFAULT_SHEET,
    SpreadsheetRecordSource,
    keep_all_cells,
    skip_numeric_cells,
)
from upload_tracker import UploadReport, UploadTracker
from voices import VOICE_PRESETS, load_voice

COLLECTION_SUFFIX = "_translations"
DEFAULT_VOICE = "filipino"
DEFAULT_DOWNLOAD_ROOT = Path("downloaded")

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class TextToSpeechBatch:
    def __init__(
        self,
        credentials: Optional[str],
        bucket: Optional[str],
        spreadsheet: Path,
        collection: str,
        sheet: str = DEFAULT_SHEET,
        header_rows: int = DEFAULT_HEADER_ROWS,
        keep_numeric_cells: bool = False,
        voice: str = DEFAULT_VOICE,
        voice_config: Optional[Path] = None,
        download_directory: Optional[Path] = None,
        workers: int = DEFAULT_DOWNLOAD_WORKERS,
        result_field: str = DEFAULT_RESULT_FIELD,
        download_timeout: Optional[float] = None,
        force: bool = False,
        debug: bool = False,
        document_store=None,
        blob_store=None,
    ):
        self.credentials = credentials or environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        self.bucket = bucket or environ.get("FIREBASE_STORAGE_BUCKET")
        if document_store is None and not self.credentials:
            raise ValueError(
                "Credentials must be provided either through --credentials argument or GOOGLE_APPLICATION_CREDENTIALS environment variable"
            )
        if blob_store is None and not self.bucket:
            raise ValueError(
                "Bucket must be provided either through --bucket argument or FIREBASE_STORAGE_BUCKET environment variable"
            )
        if not collection:
            raise ValueError("Collection name must not be empty")
        if workers < 1:
            raise ValueError(f"Worker count must be at least 1, got {workers}")
        self.spreadsheet = Path(spreadsheet)
        self.collection = collection
        self.sheet = sheet
        self.header_rows = header_rows
        self.keep_numeric_cells = keep_numeric_cells
        self.voice = load_voice(voice, voice_config)
        self.download_directory = download_directory or DEFAULT_DOWNLOAD_ROOT / collection
        self.workers = workers
        self.result_field = result_field
        self.download_timeout = download_timeout
        self.force = force
        self.debug = debug
        self.document_store = document_store
        self.blob_store = blob_store
        self.watcher = None
        self.setup_logging()

    @property
    def translations_collection(self) -> str:
        return f"{self.collection}{COLLECTION_SUFFIX}"

    def setup_logging(self):
        level = logging.DEBUG if self.debug else logging.INFO
        logging.basicConfig(
            level=level, format="%(asctime)s [%(threadName)s] %(levelname)s: %(message)s"
        )
        if self.debug:
            logging.debug(f"Debug mode enabled. Arguments: {self.__dict__}")

    def setup_signal_handler(self):
        def signal_handler(signum, frame):
            logging.info("Received interrupt signal. Exiting...")
            sys.exit(EXIT_FAILURE)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def connect(self):
        if self.document_store is None or self.blob_store is None:
            from firebase_stores import initialize_firebase

            document_store, blob_store = initialize_firebase(Path(self.credentials), self.bucket)
            self.document_store = self.document_store or document_store
            self.blob_store = self.blob_store or blob_store

    def upload_phase(self) -> UploadReport:
        source = SpreadsheetRecordSource(
            self.spreadsheet,
            sheet_name=self.sheet,
            header_rows=self.header_rows,
            cell_filter=keep_all_cells if self.keep_numeric_cells else skip_numeric_cells,
        )
        records = source.produce()
        tracker = UploadTracker(
            self.document_store,
            self.translations_collection,
            self.voice,
            max_workers=self.workers,
        )
        return tracker.run(records)

    def download_phase(self, expected_ids) -> DownloadReport:
        dispatcher = DownloadDispatcher(
            self.blob_store,
            self.download_directory,
            expected_ids,
            max_workers=self.workers,
            force=self.force,
        )
        self.watcher = ChangeFeedWatcher(
            self.document_store,
            self.translations_collection,
            dispatcher,
            self.blob_store.resolve_locator,
            result_field=self.result_field,
        )
        completed = False
        try:
            self.watcher.start()
            report = dispatcher.wait(self.download_timeout)
            completed = True
            return report
        finally:
            self.watcher.stop()
            dispatcher.shutdown(wait=completed)

    def print_summary(self, upload_report: UploadReport, download_report: DownloadReport):
        print(f"Uploaded {len(upload_report.succeeded)} of {upload_report.total} documents.")
        for doc_id, reason in upload_report.failures.items():
            print(f"  upload failed: {doc_id}: {reason}")
        print(
            f"Downloaded {len(download_report.succeeded)} of {download_report.total} audio files"
            f" ({len(download_report.skipped)} already present, {len(download_report.failures)} failed)."
        )
        for doc_id, reason in download_report.failures.items():
            print(f"  download failed: {doc_id}: {reason}")

    def run(self) -> int:
        start_time = time.time()
        logging.info("Starting text-to-speech batch")

        try:
            self.connect()
        except (ValueError, OSError) as e:
            logging.error(f"Error: {e}")
            return EXIT_FAILURE

        try:
            upload_report = self.upload_phase()
            download_report = self.download_phase(upload_report.succeeded)
        except SubscriptionError as e:
            logging.error(f"Exiting due to change feed failure: {e}")
            return EXIT_FAILURE
        except TimeoutError as e:
            logging.error(f"Exiting due to download timeout: {e}")
            return EXIT_FAILURE
        except ValidationError as e:
            logging.error(f"Exiting due to invalid input: {e}")
            return EXIT_FAILURE

        self.print_summary(upload_report, download_report)
        end_time = time.time()
        logging.info(f"Total execution time: {end_time - start_time:.2f} seconds")
        logging.info("Text-to-speech batch completed")
        return EXIT_SUCCESS


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert spreadsheet rows to speech with the Firebase Text-to-Speech extension."
    )
    parser.add_argument(
        "--credentials",
        required=False,
        help="Path to the Firebase service account JSON. If not provided, GOOGLE_APPLICATION_CREDENTIALS environment variable will be used.",
    )
    parser.add_argument(
        "--bucket",
        required=False,
        help="Cloud Storage bucket of the project. If not provided, FIREBASE_STORAGE_BUCKET environment variable will be used.",
    )
    parser.add_argument(
        "--spreadsheet", type=Path, required=True, help="Path to the .xlsx workbook to read."
    )
    parser.add_argument(
        "--collection",
        required=True,
        help=f"Collection name; documents are written to <collection>{COLLECTION_SUFFIX}.",
    )
    parser.add_argument(
        "--sheet", default=DEFAULT_SHEET, help="Worksheet to read (default: %(default)s)."
    )
    parser.add_argument(
        "--header-rows",
        type=int,
        default=DEFAULT_HEADER_ROWS,
        help="Number of leading rows to skip (default: %(default)s).",
    )
    parser.add_argument(
        "--keep-numeric-cells",
        action="store_true",
        help="Treat numeric cells as text instead of ignoring them.",
    )
    parser.add_argument(
        "--voice",
        choices=sorted(VOICE_PRESETS),
        default=DEFAULT_VOICE,
        help="Voice preset (default: %(default)s).",
    )
    parser.add_argument(
        "--voice-config",
        type=Path,
        default=None,
        help="YAML file describing the voice; overrides --voice.",
    )
    parser.add_argument(
        "--download-directory",
        type=Path,
        default=None,
        help=f"Directory for downloaded audio (default: {DEFAULT_DOWNLOAD_ROOT}/<collection>).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_DOWNLOAD_WORKERS,
        help="Concurrent uploads and downloads (default: %(default)s).",
    )
    parser.add_argument(
        "--result-field",
        default=DEFAULT_RESULT_FIELD,
        help="Document field holding the gs:// audio reference (default: %(default)s).",
    )
    parser.add_argument(
        "--download-timeout",
        type=float,
        default=None,
        help="Give up waiting for audio after this many seconds (default: wait forever).",
    )
    parser.add_argument(
        "--force", action="store_true", help="Download audio files that already exist locally."
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_arguments(argv)
    try:
        batch = TextToSpeechBatch(
            credentials=args.credentials,
            bucket=args.bucket,
            spreadsheet=args.spreadsheet,
            collection=args.collection,
            sheet=args.sheet,
            header_rows=args.header_rows,
            keep_numeric_cells=args.keep_numeric_cells,
            voice=args.voice,
            voice_config=args.voice_config,
            download_directory=args.download_directory,
            workers=args.workers,
            result_field=args.result_field,
            download_timeout=args.download_timeout,
            force=args.force,
            debug=args.debug,
        )
    except (ValueError, OSError) as e:
        logging.error(f"Error: {e}")
        sys.exit(EXIT_FAILURE)
    batch.setup_signal_handler()
    sys.exit(batch.run())


if __name__ == "__main__":
    main()

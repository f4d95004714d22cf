"""
Reads the rows of a workbook sheet into speech records.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Callable, List

from openpyxl import load_workbook

from errors import ValidationError

DEFAULT_SHEET = "Ayta Magbukun"
DEFAULT_HEADER_ROWS = 1
FIELDS_PER_RECORD = 3


@dataclass(frozen=True)
class SpeechRecord:
    source_text: str
    reference_text: str
    target_text: str

    @classmethod
    def create(cls, source_text: str, reference_text: str, target_text: str) -> "SpeechRecord":
        record = cls(
            source_text=(source_text or "").strip(),
            reference_text=(reference_text or "").strip(),
            target_text=(target_text or "").strip(),
        )
        record.validate()
        return record

    @property
    def identity(self) -> str:
        return f"{self.source_text}_{self.reference_text}_{self.target_text}"

    def validate(self):
        if not self.source_text or not self.reference_text or not self.target_text:
            raise ValidationError(f"Record has an empty field: {self.identity!r}")
        # Document ids cannot contain a path separator.
        if "/" in self.identity:
            raise ValidationError(f"Record identity contains '/': {self.identity!r}")


def skip_numeric_cells(value: Any) -> bool:
    """Default cell filter: ignore numbers and dates, such as row counters."""
    return not isinstance(value, (int, float, datetime, date, time))


def keep_all_cells(value: Any) -> bool:
    return True


class SpreadsheetRecordSource:
    def __init__(
        self,
        path: Path,
        sheet_name: str = DEFAULT_SHEET,
        header_rows: int = DEFAULT_HEADER_ROWS,
        cell_filter: Callable[[Any], bool] = skip_numeric_cells,
    ):
        self.path = Path(path)
        self.sheet_name = sheet_name
        self.header_rows = header_rows
        self.cell_filter = cell_filter

    def row_values(self, row) -> List[str]:
        values = []
        for value in row:
            if value is None or not self.cell_filter(value):
                continue
            text = str(value).strip()
            if text:
                values.append(text)
        return values

    def produce(self) -> List[SpeechRecord]:
        """Read every valid record from the sheet.

        :return: Records in sheet order
        :raises ValidationError: If the sheet does not exist in the workbook
        """
        logging.info(f"Reading records from sheet '{self.sheet_name}' of {self.path}")
        workbook = load_workbook(self.path, read_only=True, data_only=True)
        try:
            if self.sheet_name not in workbook.sheetnames:
                raise ValidationError(f"Sheet '{self.sheet_name}' not found in {self.path}")
            sheet = workbook[self.sheet_name]
            records = []
            first_row = self.header_rows + 1
            for row_number, row in enumerate(sheet.iter_rows(min_row=first_row, values_only=True), start=first_row):
                values = self.row_values(row)
                if not values:
                    continue
                values += [""] * (FIELDS_PER_RECORD - len(values))
                try:
                    records.append(SpeechRecord.create(*values[:FIELDS_PER_RECORD]))
                except ValidationError as e:
                    logging.warning(f"Skipping row {row_number}: {e}")
        finally:
            workbook.close()
        logging.info(f"Read {len(records)} records from {self.path}")
        return records

"""
app/parsers/csv_tokenizer.py

Turns uploaded CSV bytes into ordered RawRow records.
"""

from __future__ import annotations

import csv
import io
import logging

from app.domain.destination_import import RawRow

logger = logging.getLogger(__name__)

_BOM = "\ufeff"


class CSVTokenizeError(ValueError):
    """
    Raised when the file cannot be split into header + rows.
    """

    def __init__(self, message: str, *, line_number: int | None = None) -> None:
        super().__init__(message)
        self.line_number = line_number


class RowLimitExceededError(CSVTokenizeError):
    """
    Raised when the file holds more data rows than allowed.
    """

    def __init__(self, *, max_rows: int) -> None:
        super().__init__(f"File contains too many rows (maximum {max_rows}).")
        self.max_rows = max_rows


class CSVTokenizer:
    """
    Quote-aware CSV splitter producing 1-based, header-relative rows.
    """

    def __init__(self, *, delimiter: str = ",", max_rows: int | None = None) -> None:
        self._delimiter = delimiter
        self._max_rows = max_rows

    def tokenize_bytes(self, content: bytes) -> list[RawRow]:
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise CSVTokenizeError("CSV must be UTF-8 encoded.") from exc
        return self.tokenize(text)

    def tokenize(self, text: str) -> list[RawRow]:
        """
        Split text into rows. Blank lines are skipped and never numbered.
        """

        if text.startswith(_BOM):
            text = text[len(_BOM) :]

        reader = csv.reader(
            io.StringIO(text, newline=""),
            delimiter=self._delimiter,
            skipinitialspace=True,
        )
        header: tuple[str, ...] | None = None
        rows: list[RawRow] = []
        last_line = 0

        try:
            for record in reader:
                start_line = last_line + 1
                last_line = reader.line_num
                if self._is_blank(record):
                    continue

                values = [value.strip() for value in record]
                if header is None:
                    header = self._validate_header(values, line_number=start_line)
                    continue

                if len(values) != len(header):
                    raise CSVTokenizeError(
                        f"Line {start_line}: expected {len(header)} fields "
                        f"but found {len(values)}.",
                        line_number=start_line,
                    )

                if self._max_rows is not None and len(rows) >= self._max_rows:
                    raise RowLimitExceededError(max_rows=self._max_rows)

                rows.append(RawRow(row_number=len(rows) + 1, values=dict(zip(header, values))))
        except csv.Error as exc:
            line_number = last_line + 1
            raise CSVTokenizeError(
                f"Line {line_number}: invalid CSV format: {exc}",
                line_number=line_number,
            ) from exc

        if header is None:
            raise CSVTokenizeError("CSV file is empty.")

        logger.debug("CSV tokenized columns=%s rows=%s", len(header), len(rows))
        return rows

    @staticmethod
    def _validate_header(values: list[str], *, line_number: int) -> tuple[str, ...]:
        seen: set[str] = set()
        for position, name in enumerate(values, start=1):
            if not name:
                raise CSVTokenizeError(
                    f"Line {line_number}: header column {position} has no name.",
                    line_number=line_number,
                )
            if name in seen:
                raise CSVTokenizeError(
                    f"Line {line_number}: duplicate header column '{name}'.",
                    line_number=line_number,
                )
            seen.add(name)
        return tuple(values)

    @staticmethod
    def _is_blank(record: list[str]) -> bool:
        if not record:
            return True
        return len(record) == 1 and record[0].strip() == ""

"""Read uploaded recipient lists into loosely-typed rows."""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from typing import IO, Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .errors import SpreadsheetImportError

logger = logging.getLogger("certsend.store")

EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
CSV_EXTENSIONS = (".csv",)
LEGACY_EXCEL_EXTENSIONS = (".xls",)


def _is_blank_row(values) -> bool:
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in values)


def _read_xlsx(data: bytes) -> list[dict[str, Any]]:
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise SpreadsheetImportError(
            f"The uploaded file is not a valid Excel workbook ({exc})."
        ) from exc
    try:
        sheet = workbook.worksheets[0] if workbook.worksheets else None
        if sheet is None:
            raise SpreadsheetImportError("The workbook has no sheets.")
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None or _is_blank_row(header):
            raise SpreadsheetImportError("The first sheet has no header row.")
        columns = [str(h) if h is not None else "" for h in header]
        parsed = []
        for values in rows:
            if _is_blank_row(values):
                continue
            parsed.append(
                {col: value for col, value in zip(columns, values) if col}
            )
        return parsed
    finally:
        workbook.close()


def _read_csv(data: bytes) -> list[dict[str, Any]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise SpreadsheetImportError("CSV files must be UTF-8 encoded.") from exc
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise SpreadsheetImportError("The CSV file has no header row.")
    try:
        return [
            {k: v for k, v in row.items() if k is not None}
            for row in reader
            if not _is_blank_row(row.values())
        ]
    except csv.Error as exc:
        raise SpreadsheetImportError(f"The CSV file is malformed ({exc}).") from exc


def read_rows(filename: str, stream: IO[bytes]) -> list[dict[str, Any]]:
    """Parse ``stream`` according to the extension of ``filename``."""
    lowered = (filename or "").strip().lower()
    data = stream.read()
    if not data:
        raise SpreadsheetImportError("The uploaded file is empty.")
    if lowered.endswith(EXCEL_EXTENSIONS):
        rows = _read_xlsx(data)
    elif lowered.endswith(CSV_EXTENSIONS):
        rows = _read_csv(data)
    elif lowered.endswith(LEGACY_EXCEL_EXTENSIONS):
        raise SpreadsheetImportError(
            "Legacy .xls workbooks are not supported. Save the file as .xlsx and upload it again."
        )
    else:
        raise SpreadsheetImportError(
            "Unsupported file type. Upload an .xlsx or .csv file."
        )
    logger.info("[IMPORT] parsed file=%s rows=%d", filename, len(rows))
    return rows

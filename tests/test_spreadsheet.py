from io import BytesIO

import pytest
from openpyxl import Workbook

from certsend.shared.errors import SpreadsheetImportError
from certsend.shared.spreadsheet import read_rows


def _xlsx(rows):
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


@pytest.mark.no_smoke
def test_read_csv_with_bom():
    data = "\ufeffFull Name,Whatsapp Number\nAmina Al-Sabah,96500000000\n".encode("utf-8")
    rows = read_rows("list.csv", BytesIO(data))
    assert rows == [{"Full Name": "Amina Al-Sabah", "Whatsapp Number": "96500000000"}]


@pytest.mark.no_smoke
def test_read_csv_skips_blank_lines():
    data = b"Full Name,Age\nA,30\n,\nB,\n"
    rows = read_rows("list.CSV", BytesIO(data))
    assert [r["Full Name"] for r in rows] == ["A", "B"]


def test_read_xlsx_keeps_cell_types():
    stream = _xlsx(
        [
            ["Full Name", "Age", "Whatsapp Number"],
            ["Amina Al-Sabah", 29, 96500000000],
            [None, None, None],
            ["Omar", None, "+965 5555 1234"],
        ]
    )
    rows = read_rows("recipients.xlsx", stream)
    assert rows == [
        {"Full Name": "Amina Al-Sabah", "Age": 29, "Whatsapp Number": 96500000000},
        {"Full Name": "Omar", "Age": None, "Whatsapp Number": "+965 5555 1234"},
    ]


def test_unsupported_extension_rejected():
    with pytest.raises(SpreadsheetImportError, match="Unsupported file type"):
        read_rows("recipients.pdf", BytesIO(b"%PDF-1.4"))


def test_corrupt_workbook_rejected():
    with pytest.raises(SpreadsheetImportError, match="not a valid Excel workbook"):
        read_rows("recipients.xlsx", BytesIO(b"this is not a zip file"))


def test_empty_file_rejected():
    with pytest.raises(SpreadsheetImportError, match="empty"):
        read_rows("recipients.csv", BytesIO(b""))


def test_csv_without_header_rejected():
    with pytest.raises(SpreadsheetImportError):
        read_rows("recipients.csv", BytesIO(b"\n\n"))


def test_legacy_xls_names_the_limit():
    with pytest.raises(SpreadsheetImportError, match=r"Legacy \.xls workbooks are not supported"):
        read_rows("Recipients.XLS", BytesIO(b"\xd0\xcf\x11\xe0legacy"))

"""
Delimiter-aware CSV tokenizer for user-supplied spreadsheet exports.

Exports from farm-management tools and spreadsheets disagree on delimiters
and quoting, so this parser deliberately stays lenient: it sniffs the
delimiter from the header line only, treats every double quote as a toggle
(even mid-cell), and never fails on an unterminated quote.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r"\r?\n")
QUOTE = '"'


class CsvImportError(Exception):
    """Base class for failures that abort the current import attempt."""


class EmptyInputError(CsvImportError):
    def __init__(self, message: str = "The CSV file appears to be empty."):
        super().__init__(message)


class UnsupportedFileTypeError(CsvImportError):
    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"Unsupported file '{file_name}'. Please upload a CSV file.")


class FileReadError(CsvImportError):
    def __init__(self, message: str = "Failed to read the CSV file."):
        super().__init__(message)


@dataclass(frozen=True)
class ParsedTable:
    """Header row plus data rows, exactly as tokenized from one upload."""
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    delimiter: str = ","

    def column_index(self, header: str) -> int:
        """Index of the first column named ``header``, or -1."""
        try:
            return self.headers.index(header)
        except ValueError:
            return -1

    def cell(self, row: Sequence[str], index: int) -> str:
        """Cell value at ``index``; short rows read as empty trailing cells."""
        if index < 0 or index >= len(row):
            return ""
        return row[index]

    def sample_rows(self, limit: int) -> List[List[str]]:
        return [list(row) for row in self.rows[:limit]]


def detect_delimiter(first_line: str) -> str:
    """Semicolon beats tab, tab beats comma; comma is the fallback."""
    if ";" in first_line:
        return ";"
    if "\t" in first_line:
        return "\t"
    return ","


def parse_line(line: str, delimiter: str) -> List[str]:
    """Split one line into trimmed cells using a single quote-tracking pass."""
    cells: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == QUOTE:
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    cells.append("".join(current).strip())
    return cells


def _is_blank_row(cells: Sequence[str]) -> bool:
    return not any(cell.strip() for cell in cells)


def parse_csv_text(text: str) -> ParsedTable:
    """
    Parse raw CSV text into a ParsedTable.

    Raises:
        EmptyInputError: when the text has no non-blank lines
    """
    lines = [line for line in _LINE_BREAK.split(text) if line.strip()]
    if not lines:
        raise EmptyInputError()

    delimiter = detect_delimiter(lines[0])
    headers = tuple(parse_line(lines[0], delimiter))

    rows = []
    for line in lines[1:]:
        cells = parse_line(line, delimiter)
        if _is_blank_row(cells):
            continue
        rows.append(tuple(cells))

    logger.info(
        "Parsed CSV with %d columns and %d rows (delimiter=%r)",
        len(headers),
        len(rows),
        delimiter,
    )
    return ParsedTable(headers=headers, rows=tuple(rows), delimiter=delimiter)


def ensure_csv_file_name(file_name: Optional[str], allowed_extensions: Sequence[str] = (".csv",)) -> None:
    if not file_name or not file_name.lower().endswith(tuple(ext.lower() for ext in allowed_extensions)):
        raise UnsupportedFileTypeError(file_name or "")


def decode_upload(file_content: bytes) -> str:
    """Decode uploaded bytes as UTF-8 text, tolerating a byte-order mark."""
    try:
        return file_content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        logger.error("Error decoding CSV upload: %s", exc)
        raise FileReadError() from exc


def parse_csv_upload(
    file_content: bytes,
    file_name: Optional[str],
    allowed_extensions: Sequence[str] = (".csv",),
) -> ParsedTable:
    """Validate, decode and parse one uploaded file."""
    ensure_csv_file_name(file_name, allowed_extensions)
    return parse_csv_text(decode_upload(file_content))

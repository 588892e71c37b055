"""Tabular parser: raw upload bytes -> ordered header-keyed rows.

File-level checks (size, content type, encoding) run before any row is
parsed, and fail with every problem found at once.
"""
import codecs
import csv
import io
import logging
import mimetypes

from crm_import.core.config import settings
from crm_import.imports.errors import FileValidationError

logger = logging.getLogger(__name__)

Row = dict[str, str]

# ─── Constants ───

DELIMITED_TEXT_TYPES = frozenset({
    "text/csv",
    "application/csv",
    "text/plain",
    "text/tab-separated-values",
    # Browsers on Windows label .csv uploads with the Excel type.
    "application/vnd.ms-excel",
})

REPLACEMENT_CHAR = "\ufffd"
COMMENT_PREFIX = "#"


# ─── File-level checks ───

def _content_type(filename: str | None, content_type: str | None) -> str | None:
    if content_type:
        return content_type.split(";", 1)[0].strip().lower()
    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        return guessed
    return None


def size_error_message(max_bytes: int) -> str:
    """'File size exceeds 50MB limit', with KB or bytes for small limits."""
    label = f"{max_bytes} bytes"
    for unit, size in (("MB", 1024 * 1024), ("KB", 1024)):
        if max_bytes >= size:
            label = f"{max_bytes / size:g}{unit}"
            break
    return f"File size exceeds {label} limit"


def check_file(
    content: bytes,
    filename: str | None = None,
    content_type: str | None = None,
    max_bytes: int | None = None,
    sample_bytes: int | None = None,
) -> None:
    """Reject oversized, non-delimited or badly encoded files.

    Raises:
        FileValidationError: listing every problem found.
    """
    max_bytes = max_bytes if max_bytes is not None else settings.IMPORT_MAX_FILE_BYTES
    sample_bytes = sample_bytes if sample_bytes is not None else settings.IMPORT_ENCODING_SAMPLE_BYTES
    errors: list[str] = []

    if len(content) > max_bytes:
        errors.append(size_error_message(max_bytes))

    mime = _content_type(filename, content_type)
    looks_delimited = filename is not None and filename.lower().endswith((".csv", ".tsv", ".txt"))
    if mime is not None and mime not in DELIMITED_TEXT_TYPES and not looks_delimited:
        errors.append("Unsupported file format. Please upload a CSV (comma-separated) file.")

    # An incremental decoder does not flag a multi-byte character cut off at
    # the end of the sample.
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    sample = decoder.decode(content[:sample_bytes], final=False)
    if REPLACEMENT_CHAR in sample:
        errors.append("File encoding issue detected. Please ensure the file is saved in UTF-8 format.")
    else:
        try:
            content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            errors.append(f"File is not valid UTF-8 (byte offset {exc.start}).")

    if errors:
        logger.info("check_file: rejected %s: %s", filename or "<upload>", "; ".join(errors))
        raise FileValidationError(errors)


# ─── Parsing ───

def _is_blank(cells: list[str]) -> bool:
    return all(not c.strip() for c in cells)


def parse_rows(content: bytes | str, delimiter: str = ",") -> list[Row]:
    """Split delimited text into rows keyed by the header line.

    Quoted cells may contain the delimiter and newlines. Leading `#` comment
    lines are skipped, blank rows are dropped, every header key is present on
    every row (missing trailing cells become ""), extra cells are ignored.
    """
    text = content.decode("utf-8-sig") if isinstance(content, bytes) else content.removeprefix("\ufeff")
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)

    headers: list[str] | None = None
    rows: list[Row] = []
    for cells in reader:
        if not cells or _is_blank(cells):
            continue
        if headers is None:
            if cells[0].lstrip().startswith(COMMENT_PREFIX):
                continue
            headers = [h.strip() for h in cells]
            continue

        if len(cells) > len(headers):
            logger.debug("parse_rows: line %d has %d extra cells", reader.line_num, len(cells) - len(headers))
        values = [c.strip() for c in cells[: len(headers)]]
        values += [""] * (len(headers) - len(values))
        rows.append(dict(zip(headers, values)))

    logger.debug("parse_rows: %d data rows, %d columns", len(rows), len(headers or []))
    return rows


def read_upload(
    content: bytes,
    filename: str | None = None,
    content_type: str | None = None,
    delimiter: str = ",",
) -> list[Row]:
    """check_file + parse_rows, the entry point for HTTP and CLI callers."""
    check_file(content, filename=filename, content_type=content_type)
    return parse_rows(content, delimiter=delimiter)

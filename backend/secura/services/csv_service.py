"""CSV reading and writing for guest lists."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from secura.core.errors import ValidationError

_DELIMITERS = (",", ";")


def _detect_delimiter(header_line: str) -> str:
    """Pick ``;`` when the header uses it more often than ``,``."""
    counts = {delimiter: header_line.count(delimiter) for delimiter in _DELIMITERS}
    return ";" if counts[";"] > counts[","] else ","


def decode_csv(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ValidationError("CSV file must be UTF-8 encoded") from exc


def parse_csv(content: bytes | str) -> list[dict[str, str]]:
    """Turn CSV content into ordered rows keyed by trimmed header names.

    A UTF-8 BOM is dropped, the delimiter (``,`` or ``;``) is inferred from
    the header line, cell values are trimmed and blank lines are skipped.
    Rows shorter than the header are padded with empty strings.
    """
    if isinstance(content, bytes):
        text = decode_csv(content)
    else:
        text = content.lstrip("\ufeff")
    lines = text.splitlines()
    header_line = next((line for line in lines if line.strip()), None)
    if header_line is None:
        raise ValidationError("CSV file has no header row")

    reader = csv.reader(io.StringIO(text), delimiter=_detect_delimiter(header_line))
    headers: list[str] | None = None
    rows: list[dict[str, str]] = []
    try:
        for record in reader:
            if not any(cell.strip() for cell in record):
                continue
            if headers is None:
                headers = [cell.strip() for cell in record]
                continue
            row: dict[str, str] = {}
            for position, header in enumerate(headers):
                if not header:
                    continue
                value = record[position] if position < len(record) else ""
                row[header] = value.strip()
            rows.append(row)
    except csv.Error as exc:
        raise ValidationError("Malformed CSV", [str(exc)]) from exc

    if not headers or not any(headers):
        raise ValidationError("CSV file has no header row")
    return rows


def _format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def iter_csv(
    rows: Iterable[Mapping[str, Any]], *, columns: Sequence[str]
) -> Iterator[str]:
    """Yield CSV text chunk by chunk, header first."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(columns)
    yield buffer.getvalue()
    for row in rows:
        buffer.seek(0)
        buffer.truncate(0)
        writer.writerow([_format_cell(row.get(column)) for column in columns])
        yield buffer.getvalue()


def generate_csv(rows: Iterable[Mapping[str, Any]], *, columns: Sequence[str]) -> str:
    return "".join(iter_csv(rows, columns=columns))

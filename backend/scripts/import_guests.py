"""Import a guest CSV file into an event from the command line."""

from __future__ import annotations

import argparse
import asyncio
import logging
import uuid
from pathlib import Path

from secura.core.errors import NotFoundError, ValidationError
from secura.db.session import dispose_engine, session_scope
from secura.security.logging_filters import SensitiveFilter
from secura.security.redact import redact_row
from secura.services import csv_service
from secura.services.guest_import_service import (
    ImportOptions,
    ImportResult,
    import_guests_from_csv,
)

LOGGER = logging.getLogger("import_guests")

REJECT_COLUMNS = ("index", "reason")


def configure_logging(log_path: Path | None) -> None:
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.addFilter(SensitiveFilter())
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    root.addHandler(console)
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        handler.setFormatter(formatter)
        handler.addFilter(SensitiveFilter())
        root.addHandler(handler)


def write_rejects(result: ImportResult, path: Path) -> None:
    rows = [{"index": error.index, "reason": error.reason} for error in result.errors]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(csv_service.generate_csv(rows, columns=REJECT_COLUMNS), encoding="utf-8")


async def run(
    csv_path: Path, event_id: uuid.UUID, *, send_invitations: bool
) -> ImportResult:
    content = csv_path.read_bytes()
    try:
        async with session_scope() as session:
            return await import_guests_from_csv(
                session,
                content,
                event_id,
                ImportOptions(send_invitations=send_invitations),
            )
    finally:
        await dispose_engine()


def main() -> None:
    parser = argparse.ArgumentParser(description="Import guests from a CSV file")
    parser.add_argument("csv_path", type=Path, help="CSV file (',' or ';' separated)")
    parser.add_argument("--event", type=uuid.UUID, required=True, help="Target event id")
    parser.add_argument(
        "--send-invitations",
        action="store_true",
        help="Email an invitation to every created guest with an address",
    )
    parser.add_argument(
        "--rejects",
        type=Path,
        default=None,
        help="Write rejected rows (index, reason) to this CSV file",
    )
    parser.add_argument("--log", type=Path, default=None, help="Append logs to this file")
    args = parser.parse_args()

    configure_logging(args.log)

    if not args.csv_path.is_file():
        LOGGER.error("CSV file not found: %s", args.csv_path)
        raise SystemExit(1)

    try:
        result = asyncio.run(
            run(args.csv_path, args.event, send_invitations=args.send_invitations)
        )
    except (ValidationError, NotFoundError) as exc:
        LOGGER.error("Import aborted: %s", exc)
        raise SystemExit(2) from exc

    LOGGER.info(
        "Import summary: total=%s created=%s failed=%s",
        result.total,
        result.created,
        result.failed,
    )
    for error in result.errors[:10]:
        LOGGER.info("  row %s: %s %s", error.index, error.reason, redact_row(error.row))
    if args.rejects is not None and result.errors:
        write_rejects(result, args.rejects)
        LOGGER.info("Rejected rows written to %s", args.rejects)
    if result.failed:
        raise SystemExit(3)


if __name__ == "__main__":
    main()

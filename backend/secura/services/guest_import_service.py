"""Bulk guest import: row normalization, batch duplicate screening and
per-row creation.

Rows are processed strictly in input order. Each row is normalized from
whatever header variant it uses, checked against the rows already accepted
in the same call, validated, and then created through
:func:`secura.services.guest_service.create_guest`. A failing row is
recorded in the result and never stops the batch; only an oversized batch
or an unknown event is rejected as a whole, before any row is touched.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from secura.core.config import get_settings
from secura.core.errors import BatchTooLargeError, NotFoundError, ValidationError
from secura.models import DEFAULT_GUEST_CATEGORY, Event, GuestStatus
from secura.schemas.guest import NAME_REQUIRED_MESSAGE, GuestCreate, GuestMetadata, GuestRead
from secura.schemas.guest_import import GuestImportCandidate
from secura.security.redact import redact_row
from secura.services import (
    csv_service,
    event_service,
    guest_service,
    invitation_service,
)

logger = logging.getLogger(__name__)

DUPLICATE_IN_BATCH = "duplicate in batch"

# Accepted header spellings per field, consulted in order.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "event_id": ("eventId", "event_id", "event"),
    "first_name": ("firstName", "first_name", "prenom", "prénom", "Prénom"),
    "last_name": ("lastName", "last_name", "nom", "Nom"),
    "email": ("email", "Email", "courriel"),
    "phone": ("phone", "telephone", "téléphone", "Téléphone"),
    "company": ("company", "entreprise", "Entreprise"),
    "notes": ("notes", "Notes"),
    "seats": ("seats", "places", "Places"),
    "status": ("status", "statut"),
    "category": ("category", "catégorie", "categorie"),
    "table_number": ("tableNumber", "table_number", "table"),
    "special_requirements": ("specialRequirements", "besoins"),
}


@dataclass(frozen=True)
class GuestImportRow:
    """One raw input record and its position in the batch."""

    index: int
    raw: Mapping[str, Any]

    @classmethod
    def build(cls, index: int, raw: Mapping[str, Any]) -> "GuestImportRow":
        return cls(index=index, raw=MappingProxyType(dict(raw)))


@dataclass(frozen=True)
class NormalizedGuest:
    """Import candidate with canonical field names."""

    event_id: str | None
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    company: str | None
    notes: str | None
    seats: int
    status: str
    category: str
    table_number: str | None
    special_requirements: str | None


def _lookup(raw: Mapping[str, Any], field_name: str) -> str | None:
    for alias in FIELD_ALIASES[field_name]:
        value = raw.get(alias)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _parse_seats(value: str | None) -> int:
    if value is None:
        return 1
    try:
        return int(value)
    except ValueError:
        try:
            number = float(value)
        except ValueError:
            return 1
        return int(number) if number.is_integer() else 1


def normalize_row(raw: Mapping[str, Any]) -> NormalizedGuest:
    """Map a raw row onto canonical guest fields. Never raises."""
    email = _lookup(raw, "email")
    status = _lookup(raw, "status")
    return NormalizedGuest(
        event_id=_lookup(raw, "event_id"),
        first_name=_lookup(raw, "first_name") or "",
        last_name=_lookup(raw, "last_name") or "",
        email=email.lower() if email else None,
        phone=_lookup(raw, "phone"),
        company=_lookup(raw, "company"),
        notes=_lookup(raw, "notes"),
        seats=_parse_seats(_lookup(raw, "seats")),
        status=status.lower() if status else GuestStatus.PENDING.value,
        category=_lookup(raw, "category") or DEFAULT_GUEST_CATEGORY,
        table_number=_lookup(raw, "table_number"),
        special_requirements=_lookup(raw, "special_requirements"),
    )


def is_duplicate(
    candidate: NormalizedGuest, accepted: Sequence[NormalizedGuest]
) -> bool:
    """Whether ``candidate`` collides with a row accepted earlier in the batch.

    Rows collide within the same event when both carry the same email, or
    when neither has an email and first and last names match exactly.
    """
    for other in accepted:
        if other.event_id != candidate.event_id:
            continue
        if candidate.email and other.email:
            if candidate.email == other.email:
                return True
        elif not candidate.email and not other.email:
            if (
                candidate.first_name == other.first_name
                and candidate.last_name == other.last_name
            ):
                return True
    return False


class BatchDuplicateTracker:
    """Rows accepted so far in one import call."""

    def __init__(self) -> None:
        self._accepted: list[NormalizedGuest] = []

    def check(self, candidate: NormalizedGuest) -> bool:
        return is_duplicate(candidate, self._accepted)

    def register(self, candidate: NormalizedGuest) -> None:
        self._accepted.append(candidate)

    def __len__(self) -> int:
        return len(self._accepted)


@dataclass(frozen=True)
class RowValidation:
    valid: bool
    errors: tuple[str, ...] = ()


def _format_error(error: Mapping[str, Any]) -> str:
    message = str(error.get("msg", "invalid value"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {message}" if location else message


def validate_candidate(candidate: NormalizedGuest) -> RowValidation:
    """Check a normalized row, collecting every problem as a readable string."""
    errors: list[str] = []
    if not candidate.first_name and not candidate.last_name:
        errors.append(NAME_REQUIRED_MESSAGE)
    try:
        GuestImportCandidate.model_validate(
            {
                "event_id": candidate.event_id,
                "first_name": candidate.first_name,
                "last_name": candidate.last_name,
                "email": candidate.email,
                "phone": candidate.phone,
                "company": candidate.company,
                "notes": candidate.notes,
                "seats": candidate.seats,
                "status": candidate.status,
                "category": candidate.category,
                "table_number": candidate.table_number,
                "special_requirements": candidate.special_requirements,
            }
        )
    except PydanticValidationError as exc:
        errors.extend(_format_error(error) for error in exc.errors())
    return RowValidation(valid=not errors, errors=tuple(errors))


@dataclass(frozen=True)
class ImportOptions:
    send_invitations: bool = False


@dataclass(frozen=True)
class ImportRowError:
    index: int
    row: dict[str, Any]
    reason: str
    errors: tuple[str, ...] = ()


@dataclass
class ImportResult:
    """Accumulated outcome of an import call, in input order."""

    event_id: uuid.UUID
    total: int = 0
    created: int = 0
    failed: int = 0
    errors: list[ImportRowError] = field(default_factory=list)
    guests: list[GuestRead] = field(default_factory=list)

    def record_created(self, guest: GuestRead) -> None:
        self.created += 1
        self.guests.append(guest)

    def record_failure(self, error: ImportRowError) -> None:
        self.failed += 1
        self.errors.append(error)

    def record(self, outcome: GuestRead | ImportRowError) -> None:
        if isinstance(outcome, ImportRowError):
            self.record_failure(outcome)
        else:
            self.record_created(outcome)


def _to_payload(candidate: NormalizedGuest, event_id: uuid.UUID) -> GuestCreate:
    return GuestCreate(
        event_id=event_id,
        first_name=candidate.first_name,
        last_name=candidate.last_name,
        email=candidate.email,
        phone=candidate.phone,
        company=candidate.company,
        notes=candidate.notes,
        seats=candidate.seats,
        status=GuestStatus(candidate.status),
        metadata=GuestMetadata(
            category=candidate.category,
            table_number=candidate.table_number,
            special_requirements=candidate.special_requirements,
        ),
    )


async def _process_row(
    session: AsyncSession,
    *,
    row: GuestImportRow,
    event_id: uuid.UUID,
    tracker: BatchDuplicateTracker,
    options: ImportOptions,
) -> GuestRead | ImportRowError:
    candidate = normalize_row(row.raw)
    # Rows always join the batch's event, whatever their own event column says.
    candidate = replace(candidate, event_id=str(event_id))

    if tracker.check(candidate):
        return ImportRowError(
            index=row.index, row=dict(row.raw), reason=DUPLICATE_IN_BATCH
        )

    validation = validate_candidate(candidate)
    if not validation.valid:
        return ImportRowError(
            index=row.index,
            row=dict(row.raw),
            reason="; ".join(validation.errors),
            errors=validation.errors,
        )

    try:
        guest = await guest_service.create_guest(
            session,
            payload=_to_payload(candidate, event_id),
            enforce_unique_email=False,
            refresh_event_stats=False,
        )
    except PydanticValidationError as exc:
        messages = tuple(_format_error(error) for error in exc.errors())
        return ImportRowError(
            index=row.index, row=dict(row.raw), reason="; ".join(messages), errors=messages
        )
    except ValidationError as exc:
        return ImportRowError(
            index=row.index, row=dict(row.raw), reason=str(exc), errors=tuple(exc.errors)
        )
    except Exception as exc:
        logger.warning(
            "Import row %s failed: %s (%s)", row.index, exc, redact_row(row.raw)
        )
        return ImportRowError(index=row.index, row=dict(row.raw), reason=str(exc))

    tracker.register(candidate)
    if options.send_invitations and guest.email:
        try:
            await invitation_service.send_invitation(session, guest=guest)
            await session.refresh(guest)
        except Exception:
            logger.exception("Invitation for imported guest %s failed", guest.id)
    return GuestRead.model_validate(guest)


async def import_batch(
    session: AsyncSession,
    rows: Sequence[Mapping[str, Any]],
    event_id: uuid.UUID | str | None,
    options: ImportOptions | None = None,
) -> ImportResult:
    """Import ``rows`` into an event and report what was created.

    Raises :class:`BatchTooLargeError` when the batch exceeds
    ``GUEST_BULK_IMPORT_LIMIT`` and :class:`ValidationError` or
    :class:`NotFoundError` for a missing or unknown event; every other
    failure is reported per row in the returned result.
    """
    options = options or ImportOptions()
    limit = get_settings().guest_bulk_import_limit
    if len(rows) > limit:
        raise BatchTooLargeError(limit=limit, received=len(rows), noun="guests")
    if event_id is None or str(event_id).strip() == "":
        raise ValidationError("event_id is required")
    try:
        event_uuid = event_id if isinstance(event_id, uuid.UUID) else uuid.UUID(str(event_id))
    except ValueError as exc:
        raise ValidationError("event_id is not a valid identifier") from exc

    event = await session.get(Event, event_uuid)
    if event is None:
        raise NotFoundError("Event")

    result = ImportResult(event_id=event_uuid, total=len(rows))
    tracker = BatchDuplicateTracker()
    for index, raw in enumerate(rows):
        row = GuestImportRow.build(index, raw)
        outcome = await _process_row(
            session, row=row, event_id=event_uuid, tracker=tracker, options=options
        )
        result.record(outcome)

    if result.created:
        await event_service.refresh_statistics(session, event_id=event_uuid)
    logger.info(
        "Import into event %s finished: %s created, %s failed",
        event_uuid,
        result.created,
        result.failed,
    )
    return result


async def import_guests_from_csv(
    session: AsyncSession,
    content: bytes | str,
    event_id: uuid.UUID | str | None,
    options: ImportOptions | None = None,
) -> ImportResult:
    """Parse CSV content and import its rows; parse errors abort before any row."""
    rows = csv_service.parse_csv(content)
    return await import_batch(session, rows, event_id, options)

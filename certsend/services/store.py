from __future__ import annotations

import logging
import math
from typing import Any, Callable, Iterable, Mapping

from sqlalchemy.exc import SQLAlchemyError

from ..app import db
from ..models import NOT_AVAILABLE, Recipient
from ..shared.errors import PersistenceError, RecipientNotFound
from ..shared.statuses import PENDING
from .feed import RecipientFeed, Snapshot, TransientStatusBoard, get_board, get_feed

logger = logging.getLogger("certsend.store")

# spreadsheet header -> Recipient attribute; headers match exactly
COLUMN_MAP: dict[str, str] = {
    "Full Name": "full_name",
    "Age": "age",
    "Blood Group": "blood_group",
    "Gender": "gender",
    "Job": "job",
    "Area in Kuwait": "area",
    "Whatsapp Number": "whatsapp_number",
    "Email address": "email_address",
    "Registered At": "registered_at",
    "Checked In At": "checked_in_at",
}

PATCHABLE_FIELDS = frozenset({"status", "download_link"})

# ages outside 0..MAX_AGE fall back to the 0 sentinel
MAX_AGE = 150


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: Any) -> str:
    if _blank(value):
        return NOT_AVAILABLE
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _age(value: Any) -> int:
    if _blank(value):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    if not math.isfinite(number) or not 0 <= number <= MAX_AGE:
        return 0
    return int(number)


def row_to_fields(row: Mapping[str, Any]) -> dict[str, Any]:
    """Map one parsed spreadsheet row onto Recipient columns."""
    fields: dict[str, Any] = {}
    for header, attr in COLUMN_MAP.items():
        raw = row.get(header)
        fields[attr] = _age(raw) if attr == "age" else _text(raw)
    fields["status"] = PENDING
    fields["download_link"] = None
    return fields


class RecipientStore:
    """Thin persistence wrapper over the ``recipients`` table."""

    def __init__(
        self,
        feed: RecipientFeed | None = None,
        board: TransientStatusBoard | None = None,
    ) -> None:
        self.feed = feed if feed is not None else get_feed()
        self.board = board if board is not None else get_board()

    # -- reads -------------------------------------------------------------
    def list(self) -> list[Recipient]:
        return db.session.query(Recipient).order_by(Recipient.id).all()

    def get(self, recipient_id: int) -> Recipient:
        recipient = db.session.get(Recipient, recipient_id)
        if recipient is None:
            raise RecipientNotFound(f"Recipient {recipient_id} not found.")
        return recipient

    def snapshot(self) -> Snapshot:
        return self.board.overlay([r.to_dict() for r in self.list()])

    def subscribe(self, observer: Callable[[Snapshot], None]) -> Callable[[], None]:
        unsubscribe = self.feed.subscribe(observer)
        observer(self.snapshot())
        return unsubscribe

    def publish(self) -> None:
        self.feed.publish(self.snapshot())

    # -- writes ------------------------------------------------------------
    def _commit(self, action: str) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("[%s] commit rejected: %s", action, exc)
            raise PersistenceError(
                f"{PersistenceError.notice} ({exc.__class__.__name__})"
            ) from exc

    def import_rows(self, raw_rows: Iterable[Mapping[str, Any]]) -> int:
        records = [Recipient(**row_to_fields(row)) for row in raw_rows]
        if not records:
            return 0
        db.session.add_all(records)
        self._commit("IMPORT")
        logger.info("[IMPORT] inserted=%d", len(records))
        self.publish()
        return len(records)

    def clear_all(self) -> int:
        try:
            removed = db.session.query(Recipient).delete(synchronize_session=False)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("[CLEAR] delete rejected: %s", exc)
            raise PersistenceError() from exc
        self._commit("CLEAR")
        db.session.expire_all()
        self.board.clear_all()
        logger.info("[CLEAR] removed=%d", removed)
        self.publish()
        return removed

    def update(self, recipient_id: int, **fields: Any) -> Recipient:
        unknown = set(fields) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch fields: {', '.join(sorted(unknown))}")
        recipient = self.get(recipient_id)
        for key, value in fields.items():
            setattr(recipient, key, value)
        self._commit("UPDATE")
        self.board.clear([recipient_id])
        self.publish()
        return recipient

"""Recipient lifecycle states."""

from __future__ import annotations

PENDING = "Pending"
GENERATING = "Generating"
GENERATED = "Generated"
SENDING = "Sending"
SENT = "Sent"
FAILED = "Failed"

ALL_STATUSES: tuple[str, ...] = (PENDING, GENERATING, GENERATED, SENDING, SENT, FAILED)

# Only these ever reach the database; the rest are in-flight overlays.
PERSISTED_STATUSES = frozenset({PENDING, GENERATED, SENT, FAILED})
TRANSIENT_STATUSES = frozenset({GENERATING, SENDING})

GENERATE_ELIGIBLE = frozenset({PENDING, FAILED})
SEND_ELIGIBLE = frozenset({GENERATED, SENT, FAILED})

BADGE_CLASSES = {
    PENDING: "outline",
    GENERATING: "secondary",
    GENERATED: "default",
    SENDING: "secondary",
    SENT: "default",
    FAILED: "destructive",
}

"""Structured notes stored in an order's note fields.

Each note is serialised as one compact JSON object per line so that a
note field holding several appended notes can still be parsed. Lines
that are not a recognised JSON note (free text written by the back office)
are skipped.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Literal, TypeAlias

logger = logging.getLogger(__name__)

MAX_RATING = 5


@dataclass(frozen=True)
class Rating:
    """A 0-5 star rating with an optional comment. 0 means not rated."""

    rating: int
    comment: str = ""

    def __post_init__(self) -> None:
        """Validate rating bounds on creation."""
        if not 0 <= self.rating <= MAX_RATING:
            raise ValueError(f"rating must be between 0 and {MAX_RATING}, got {self.rating}")

    @property
    def is_empty(self) -> bool:
        return self.rating == 0 and not self.comment.strip()


@dataclass(frozen=True)
class CancellationNote:
    """Why the customer cancelled an order."""

    reason: str
    timestamp: int  # unix milliseconds
    order_id: str
    order_ref: str
    type: Literal["cancellation"] = "cancellation"

    def __post_init__(self) -> None:
        if not self.reason.strip():
            raise ValueError("cancellation reason must not be empty")


@dataclass(frozen=True)
class FeedbackNote:
    """Customer feedback on a delivered order."""

    delivery: Rating
    product: Rating
    timestamp: int  # unix milliseconds
    order_id: str
    order_ref: str
    type: Literal["feedback"] = "feedback"

    def __post_init__(self) -> None:
        if self.delivery.is_empty and self.product.is_empty:
            raise ValueError("feedback needs at least one rating or comment")


StructuredNote: TypeAlias = CancellationNote | FeedbackNote


def serialize_note(note: StructuredNote) -> str:
    """Serialise a note to a single line of JSON."""
    data = asdict(note)
    # Wire keys follow the mobile app's camelCase note format
    data["orderId"] = data.pop("order_id")
    data["orderRef"] = data.pop("order_ref")
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def _rating_from(raw: Any) -> Rating:
    if not isinstance(raw, dict):
        return Rating(0)
    return Rating(int(raw.get("rating", 0)), str(raw.get("comment", "")))


def deserialize_note(text: str) -> StructuredNote | None:
    """Parse one serialised note, or None if it is not one."""
    text = text.strip()
    if not (text.startswith("{") and text.endswith("}")):
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or not data.get("timestamp") or not data.get("orderId"):
        logger.debug(f"Ignoring note with invalid structure: {text[:80]}")
        return None

    try:
        common = {
            "timestamp": int(data["timestamp"]),
            "order_id": str(data["orderId"]),
            "order_ref": str(data.get("orderRef", "")),
        }
        if data.get("type") == "cancellation":
            return CancellationNote(reason=str(data.get("reason", "")), **common)
        if data.get("type") == "feedback":
            return FeedbackNote(
                delivery=_rating_from(data.get("delivery")),
                product=_rating_from(data.get("product")),
                **common,
            )
    except (TypeError, ValueError) as e:
        logger.debug(f"Ignoring malformed note: {e}")
        return None
    return None


def parse_notes(text: str | None) -> list[StructuredNote]:
    """All structured notes found in a note field, in order."""
    if not text:
        return []
    notes = []
    for line in text.splitlines():
        note = deserialize_note(line)
        if note is not None:
            notes.append(note)
    return notes


def merge_note_text(existing: str | None, addition: str) -> str:
    """Append a note to existing note text, one entry per line."""
    existing = (existing or "").rstrip()
    addition = addition.strip()
    if not existing:
        return addition
    if not addition:
        return existing
    return f"{existing}\n{addition}"


def latest_feedback(text: str | None) -> FeedbackNote | None:
    """Most recent feedback note in a note field."""
    feedback = [n for n in parse_notes(text) if isinstance(n, FeedbackNote)]
    return feedback[-1] if feedback else None


def latest_cancellation(text: str | None) -> CancellationNote | None:
    """Most recent cancellation note in a note field."""
    cancellations = [n for n in parse_notes(text) if isinstance(n, CancellationNote)]
    return cancellations[-1] if cancellations else None

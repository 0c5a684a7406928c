"""
Version stamp comparison for optimistic locking.

A stamp is the ``updated_at`` timestamp of an entity. The comparison
tolerates a small clock skew so that round-tripping a timestamp through
serialisation or a slightly drifting clock never produces a false conflict.
"""

import datetime as dt
from enum import Enum
from typing import Optional, Union

from ..errors import ConflictError

STAMP_TOLERANCE_MS = 1000

Stamp = Union[dt.datetime, str]


class StampFreshness(str, Enum):
	"""Outcome of comparing a client stamp with the stored one."""
	FRESH = "fresh"
	STALE = "stale"


def parse_stamp(value: Stamp) -> dt.datetime:
	"""Parse a stamp into an aware datetime. Naive values are taken as UTC."""
	if isinstance(value, str):
		text = value.strip()
		if text.endswith("Z"):
			text = text[:-1] + "+00:00"
		value = dt.datetime.fromisoformat(text)
	if value.tzinfo is None:
		value = value.replace(tzinfo=dt.timezone.utc)
	return value


def compare_stamps(
	expected: Stamp,
	actual: Stamp,
	tolerance_ms: int = STAMP_TOLERANCE_MS,
) -> StampFreshness:
	"""
	Compare the client's last-known stamp with the stored stamp.

	Returns FRESH when the stored stamp is not newer than the expected one, or
	when both lie within ``tolerance_ms`` of each other. Only a stored stamp
	newer by more than the tolerance is STALE.
	"""
	expected_at = parse_stamp(expected)
	actual_at = parse_stamp(actual)

	if actual_at <= expected_at:
		return StampFreshness.FRESH

	delta_ms = (actual_at - expected_at).total_seconds() * 1000
	if delta_ms <= tolerance_ms:
		return StampFreshness.FRESH
	return StampFreshness.STALE


def ensure_fresh(
	entity: str,
	entity_id: str,
	expected: Optional[Stamp],
	actual: Stamp,
	tolerance_ms: int = STAMP_TOLERANCE_MS,
) -> None:
	"""Raise ConflictError if ``expected`` is stale. No expectation means no check."""
	if expected is None:
		return
	if compare_stamps(expected, actual, tolerance_ms) == StampFreshness.STALE:
		raise ConflictError(
			f"{entity} {entity_id} was modified concurrently: "
			f"expected {parse_stamp(expected).isoformat()}, found {parse_stamp(actual).isoformat()}"
		)

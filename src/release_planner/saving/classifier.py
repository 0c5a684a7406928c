"""
Error classification for plan saves.

Every failure the orchestrator sees, whatever its shape (a typed store
error, an SQLite driver error, a connection error or anything else), goes
through ``classify_error`` and comes out as one ErrorContext. Nothing else
in the save path inspects exception types.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
	"""Closed taxonomy of save failures."""
	VALIDATION = "validation"
	NOT_FOUND = "not_found"
	CONFLICT = "conflict"
	RATE_LIMIT = "rate_limit"
	SERVER_ERROR = "server_error"
	NETWORK = "network"
	UNKNOWN = "unknown"


RETRYABLE_CATEGORIES = frozenset({
	ErrorCategory.CONFLICT,
	ErrorCategory.RATE_LIMIT,
	ErrorCategory.NETWORK,
})

USER_MESSAGES = {
	ErrorCategory.VALIDATION: "The submitted data is not valid.",
	ErrorCategory.NOT_FOUND: "The requested item no longer exists. Refresh and review your changes.",
	ErrorCategory.CONFLICT: "This item was changed by someone else in the meantime. Please reload and retry.",
	ErrorCategory.RATE_LIMIT: "Too many requests right now. Please wait a moment and retry.",
	ErrorCategory.SERVER_ERROR: "The server could not complete the request. Please try again later.",
	ErrorCategory.NETWORK: "Could not reach the server. Check your connection and retry.",
	ErrorCategory.UNKNOWN: "An unexpected error occurred. Please retry.",
}

# 409 codes that mean "your input clashes", not "someone else wrote first"
INPUT_CONFLICT_CODES = frozenset({"DUPLICATE_NAME", "DUPLICATE_PLAN_NAME"})

CONFLICT_CODES = frozenset({"CONFLICT", "CONCURRENT_MODIFICATION"})


@dataclass(frozen=True)
class ErrorContext:
	"""Classified failure: what happened, whether to retry, what to tell the user."""
	category: ErrorCategory
	retryable: bool
	user_message: str
	technical_message: str
	status_code: Optional[int] = None
	code: Optional[str] = None

	def to_dict(self) -> dict:
		return {
			"category": self.category.value,
			"retryable": self.retryable,
			"user_message": self.user_message,
			"status_code": self.status_code,
			"code": self.code,
		}


class SectionValidationError(Exception):
	"""Client-side validation failure for one field of a section."""

	status_code = 400
	code = "VALIDATION_ERROR"

	def __init__(self, field: str, message: str):
		super().__init__(f"{field}: {message}")
		self.field = field
		self.message = message


class SaveError(Exception):
	"""
	Terminal save failure.

	``str(error)`` is always the user-facing message; the technical detail
	stays on ``context`` for logging.
	"""

	def __init__(self, context: ErrorContext, attempts: int = 0, section: Optional[str] = None):
		super().__init__(context.user_message)
		self.context = context
		self.attempts = attempts
		self.section = section

	@property
	def category(self) -> ErrorCategory:
		return self.context.category


def _context(
	category: ErrorCategory,
	error: BaseException,
	status_code: Optional[int] = None,
	code: Optional[str] = None,
	user_message: Optional[str] = None,
) -> ErrorContext:
	return ErrorContext(
		category=category,
		retryable=category in RETRYABLE_CATEGORIES,
		user_message=user_message or USER_MESSAGES[category],
		technical_message=f"{type(error).__name__}: {error}",
		status_code=status_code,
		code=code,
	)


def classify_error(error: BaseException) -> ErrorContext:
	"""
	Map any failure onto the save error taxonomy.

	Order matters: explicit client validation first, then transport-level
	"no response" failures, then HTTP-style status/code metadata, then
	driver errors, then the UNKNOWN fallback.
	"""
	if isinstance(error, SaveError):
		return error.context

	if isinstance(error, SectionValidationError):
		return _context(
			ErrorCategory.VALIDATION, error,
			status_code=400, code=error.code, user_message=str(error),
		)

	status_code = getattr(error, "status_code", None)
	code = getattr(error, "code", None)
	if not isinstance(code, str):
		code = None

	if status_code == 408 or getattr(error, "is_network_error", False) or isinstance(
		error, (ConnectionError, TimeoutError, asyncio.TimeoutError)
	):
		return _context(ErrorCategory.NETWORK, error, status_code, code)

	message = getattr(error, "message", None) or str(error)

	if status_code == 400 or code == "VALIDATION_ERROR":
		return _context(ErrorCategory.VALIDATION, error, 400, code, user_message=message or None)

	if status_code == 404 or code == "NOT_FOUND":
		return _context(ErrorCategory.NOT_FOUND, error, 404, code)

	if code in INPUT_CONFLICT_CODES:
		return _context(ErrorCategory.VALIDATION, error, status_code, code, user_message=message or None)

	if status_code == 409 or code in CONFLICT_CODES:
		return _context(ErrorCategory.CONFLICT, error, 409, code)

	if status_code == 429 or code == "RATE_LIMIT":
		return _context(ErrorCategory.RATE_LIMIT, error, 429, code)

	if isinstance(status_code, int) and status_code >= 500:
		return _context(ErrorCategory.SERVER_ERROR, error, status_code, code)

	if isinstance(error, sqlite3.Error):
		return _context(ErrorCategory.SERVER_ERROR, error, None, type(error).__name__)

	return _context(ErrorCategory.UNKNOWN, error, status_code, code)

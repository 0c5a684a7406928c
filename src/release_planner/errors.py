"""
Store errors - typed failures raised by the plan, feature and product stores.

Each error carries an HTTP-style ``status_code`` and a machine ``code`` so a
single classifier can map any store (local SQLite or remote) onto the save
error taxonomy.
"""

from typing import Optional


class StoreError(Exception):
	"""Base class for failures reported by a store."""

	status_code: Optional[int] = None
	default_code: Optional[str] = None
	is_network_error: bool = False

	def __init__(self, message: str, code: Optional[str] = None):
		super().__init__(message)
		self.message = message
		self.code = code or self.default_code


class StoreValidationError(StoreError):
	"""Raised when a write carries malformed or missing fields."""

	status_code = 400
	default_code = "VALIDATION_ERROR"


class NotFoundError(StoreError):
	"""Raised when the requested entity does not exist."""

	status_code = 404
	default_code = "NOT_FOUND"

	def __init__(self, entity: str, entity_id: str):
		super().__init__(f"{entity} not found: {entity_id}")
		self.entity = entity
		self.entity_id = entity_id


class ConflictError(StoreError):
	"""Raised when an optimistic-lock check fails."""

	status_code = 409
	default_code = "CONCURRENT_MODIFICATION"


class DuplicateNameError(ConflictError):
	"""Raised when a unique name is already taken."""

	default_code = "DUPLICATE_NAME"


class RateLimitError(StoreError):
	"""Raised when the backing service throttles writes."""

	status_code = 429
	default_code = "RATE_LIMIT"


class StoreUnavailableError(StoreError):
	"""Raised when the store could not be reached at all."""

	default_code = "NETWORK_ERROR"
	is_network_error = True

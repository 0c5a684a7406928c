"""
Plan Store - SQLite-backed release plan storage.

Features:
- CRUD operations for plans
- Partial updates with optimistic locking on ``updated_at``
- Unique plan names
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from ..database import SqliteStore
from ..errors import ConflictError, DuplicateNameError, NotFoundError, StoreValidationError
from ..saving.stamps import STAMP_TOLERANCE_MS, Stamp, ensure_fresh
from ..utils import utc_now
from .models import Plan, PlanStatus

logger = logging.getLogger(__name__)

# Fields a partial update may never touch
PROTECTED_FIELDS = {"id", "created_at", "updated_at"}


class OptimisticLockError(ConflictError):
	"""Raised when a concurrent update conflicts."""
	pass


class PlanNotFoundError(NotFoundError):
	"""Raised when a plan is not found."""

	def __init__(self, plan_id: str):
		super().__init__("Plan", plan_id)


class PlanValidationError(StoreValidationError):
	"""Raised when an update would leave the plan malformed."""
	pass


def _validation_message(error: ValidationError) -> str:
	first = error.errors()[0]
	location = ".".join(str(part) for part in first.get("loc", ()))
	message = first.get("msg", "invalid value")
	return f"{location}: {message}" if location else message


class PlanStore(SqliteStore):
	"""
	SQLite-backed plan storage.

	Updates run under the store's write lock, so concurrent partial updates
	of different sections each merge onto the latest stored plan.

	Usage:
		store = PlanStore("data/release_planner.db")
		await store.init()

		plan = await store.create_plan(plan)

		# Partial update with optimistic locking
		updated = await store.update(plan.id, {"name": "R2"}, plan.updated_at)
	"""

	SCHEMA = """
		CREATE TABLE IF NOT EXISTS plans (
			id TEXT PRIMARY KEY,
			name TEXT NOT NULL UNIQUE,
			status TEXT NOT NULL,
			product_id TEXT,
			data TEXT NOT NULL,
			created_at TEXT NOT NULL,
			updated_at TEXT NOT NULL
		);
		CREATE INDEX IF NOT EXISTS idx_plans_status ON plans(status);
		CREATE INDEX IF NOT EXISTS idx_plans_product ON plans(product_id);
	"""

	def __init__(self, db_path: str, tolerance_ms: int = STAMP_TOLERANCE_MS):
		super().__init__(db_path)
		self.tolerance_ms = tolerance_ms

	async def _check_name_free(self, name: str, plan_id: str) -> None:
		db = await self.connection()
		async with db.execute(
			"SELECT id FROM plans WHERE name = ? AND id != ?",
			(name, plan_id),
		) as cursor:
			row = await cursor.fetchone()
		if row:
			raise DuplicateNameError(
				f'Plan with name "{name}" already exists',
				code="DUPLICATE_PLAN_NAME",
			)

	async def create_plan(self, plan: Plan) -> Plan:
		"""
		Create a new plan.

		Args:
			plan: Plan object to create

		Returns:
			The stored plan with fresh timestamps
		"""
		db = await self.connection()
		await self._check_name_free(plan.name, plan.id)

		now = utc_now()
		plan = plan.model_copy(update={"created_at": now, "updated_at": now})

		await db.execute(
			"""
			INSERT INTO plans (id, name, status, product_id, data, created_at, updated_at)
			VALUES (?, ?, ?, ?, ?, ?, ?)
			""",
			(
				plan.id,
				plan.name,
				plan.status.value,
				plan.product_id,
				plan.model_dump_json(),
				plan.created_at.isoformat(),
				plan.updated_at.isoformat(),
			),
		)
		await db.commit()
		logger.info(f"Created plan {plan.id} ({plan.name})")

		return plan

	async def find(self, plan_id: str) -> Optional[Plan]:
		"""Get a plan by ID, or None."""
		db = await self.connection()
		async with db.execute("SELECT data FROM plans WHERE id = ?", (plan_id,)) as cursor:
			row = await cursor.fetchone()

		if not row:
			return None
		return Plan.model_validate_json(row["data"])

	async def get(self, plan_id: str) -> Plan:
		"""
		Get a plan by ID.

		Raises:
			PlanNotFoundError: If the plan does not exist
		"""
		plan = await self.find(plan_id)
		if plan is None:
			raise PlanNotFoundError(plan_id)
		return plan

	async def update(
		self,
		plan_id: str,
		changes: dict[str, Any],
		expected_timestamp: Optional[Stamp] = None,
	) -> Plan:
		"""
		Apply a partial update with optimistic locking.

		Args:
			plan_id: Plan ID to update
			changes: Field name -> new value, only for fields being changed
			expected_timestamp: The caller's last-known ``updated_at``

		Returns:
			The persisted plan with a new ``updated_at``

		Raises:
			PlanNotFoundError: If the plan does not exist
			OptimisticLockError: If ``expected_timestamp`` is stale
			PlanValidationError: If a field is unknown or malformed
			DuplicateNameError: If the new name is taken
		"""
		async with self._write_lock:
			return await self._update_locked(plan_id, changes, expected_timestamp)

	async def _update_locked(
		self,
		plan_id: str,
		changes: dict[str, Any],
		expected_timestamp: Optional[Stamp],
	) -> Plan:
		current = await self.get(plan_id)

		try:
			ensure_fresh("Plan", plan_id, expected_timestamp, current.updated_at, self.tolerance_ms)
		except ConflictError as e:
			raise OptimisticLockError(str(e)) from e

		unknown = set(changes) - set(Plan.model_fields)
		if unknown:
			raise PlanValidationError(f"Unknown plan fields: {', '.join(sorted(unknown))}")
		protected = set(changes) & PROTECTED_FIELDS
		if protected:
			raise PlanValidationError(f"Fields cannot be updated: {', '.join(sorted(protected))}")

		data = current.model_dump()
		data.update(changes)
		data["updated_at"] = utc_now()
		try:
			updated = Plan.model_validate(data)
		except ValidationError as e:
			raise PlanValidationError(_validation_message(e)) from e

		if updated.name != current.name:
			await self._check_name_free(updated.name, plan_id)

		db = await self.connection()
		await db.execute(
			"""
			UPDATE plans SET name = ?, status = ?, product_id = ?, data = ?, updated_at = ?
			WHERE id = ?
			""",
			(
				updated.name,
				updated.status.value,
				updated.product_id,
				updated.model_dump_json(),
				updated.updated_at.isoformat(),
				plan_id,
			),
		)
		await db.commit()
		logger.info(f"Updated plan {plan_id} ({', '.join(sorted(changes))})")

		return updated

	async def list_plans(
		self,
		status: Optional[PlanStatus] = None,
		product_id: Optional[str] = None,
	) -> list[Plan]:
		"""
		List plans, most recently updated first.

		Args:
			status: Filter by status
			product_id: Filter by product
		"""
		db = await self.connection()

		conditions = []
		params = []

		if status:
			conditions.append("status = ?")
			params.append(status.value)

		if product_id:
			conditions.append("product_id = ?")
			params.append(product_id)

		where_clause = " AND ".join(conditions) if conditions else "1=1"

		async with db.execute(
			f"SELECT data FROM plans WHERE {where_clause} ORDER BY updated_at DESC",
			params,
		) as cursor:
			rows = await cursor.fetchall()

		return [Plan.model_validate_json(row["data"]) for row in rows]

	async def delete_plan(self, plan_id: str):
		"""
		Delete a plan.

		Args:
			plan_id: Plan ID to delete
		"""
		db = await self.connection()
		await db.execute("DELETE FROM plans WHERE id = ?", (plan_id,))
		await db.commit()
		logger.info(f"Deleted plan {plan_id}")

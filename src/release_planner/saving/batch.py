"""
Dependent writes - fan-out/fan-in execution of post-commit side effects.

After a plan write commits, its feature status changes and component
version updates run concurrently. Each write gets exactly one attempt;
a failure is classified and reported for that entity only and never
aborts its siblings.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .classifier import ErrorCategory, ErrorContext, classify_error
from .signals import EntityKind

logger = logging.getLogger(__name__)


class BatchStatus(str, Enum):
	"""Overall outcome of a set of dependent writes."""
	COMPLETED = "completed"
	PARTIAL_FAILURE = "partial_failure"
	FAILED = "failed"


@dataclass
class DependentUpdate:
	"""One post-commit write."""
	kind: EntityKind
	entity_id: str
	action: str
	run: Callable[[], Awaitable[Any]]


@dataclass
class DependentUpdateResult:
	"""Per-entity outcome of a dependent write."""
	kind: EntityKind
	entity_id: str
	action: str
	success: bool
	result: Any = None
	error: Optional[ErrorContext] = None

	@property
	def category(self) -> Optional[ErrorCategory]:
		return self.error.category if self.error else None

	def to_dict(self) -> dict:
		data = {
			"kind": self.kind.value,
			"entity_id": self.entity_id,
			"action": self.action,
			"success": self.success,
		}
		if self.error:
			data["error"] = self.error.to_dict()
		return data


@dataclass
class BatchSummary:
	"""Summary of a completed set of dependent writes."""
	status: BatchStatus
	total: int
	succeeded: int
	failed: int
	results: list[DependentUpdateResult] = field(default_factory=list)

	@property
	def success_rate(self) -> float:
		"""Fraction of writes that succeeded."""
		if self.total == 0:
			return 0.0
		return self.succeeded / self.total


class DependentWriteExecutor:
	"""
	Runs dependent writes with bounded concurrency.

	Uses asyncio.Semaphore to limit concurrent writes. Results come back in
	the order the updates were given.
	"""

	def __init__(self, max_concurrency: int = 8):
		"""
		Args:
			max_concurrency: Maximum number of writes in flight at once
		"""
		self.max_concurrency = max_concurrency

	async def execute(self, updates: list[DependentUpdate]) -> BatchSummary:
		"""
		Run every update once and collect all outcomes.

		Args:
			updates: Writes to run

		Returns:
			BatchSummary with one result per update
		"""
		if not updates:
			return BatchSummary(status=BatchStatus.COMPLETED, total=0, succeeded=0, failed=0)

		semaphore = asyncio.Semaphore(self.max_concurrency)

		async def process(update: DependentUpdate) -> DependentUpdateResult:
			async with semaphore:
				try:
					result = await update.run()
				except Exception as e:
					context = classify_error(e)
					logger.warning(
						f"{update.kind.value} {update.entity_id} {update.action} failed "
						f"({context.category.value}): {context.technical_message}"
					)
					return DependentUpdateResult(
						kind=update.kind,
						entity_id=update.entity_id,
						action=update.action,
						success=False,
						error=context,
					)
				return DependentUpdateResult(
					kind=update.kind,
					entity_id=update.entity_id,
					action=update.action,
					success=True,
					result=result,
				)

		# Fan out
		results = list(await asyncio.gather(*(process(u) for u in updates)))

		# Fan in
		succeeded = sum(1 for r in results if r.success)
		failed = len(results) - succeeded

		if failed == 0:
			status = BatchStatus.COMPLETED
		elif succeeded == 0:
			status = BatchStatus.FAILED
		else:
			status = BatchStatus.PARTIAL_FAILURE

		return BatchSummary(
			status=status,
			total=len(results),
			succeeded=succeeded,
			failed=failed,
			results=results,
		)

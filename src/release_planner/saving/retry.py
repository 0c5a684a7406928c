"""
Retry Policy - bounded retries with per-category backoff.

The policy is a pure table lookup; ``run_with_retry`` is the combinator that
applies it to any awaitable operation.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .classifier import ErrorCategory, ErrorContext, SaveError, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SAVE_ATTEMPTS = 3


@dataclass(frozen=True)
class RetryDecision:
	"""Whether to try again, and how long to wait first."""
	should_retry: bool
	delay_ms: int = 0


class RetryPolicy:
	"""
	Backoff table keyed by error category.

	``attempt`` is the zero-based index of the attempt that just failed, so
	after the third failed write (attempt 2) no retry is ever granted with
	the default bound.
	"""

	def __init__(self, max_attempts: int = MAX_SAVE_ATTEMPTS):
		if max_attempts < 1:
			raise ValueError("max_attempts must be at least 1")
		self.max_attempts = max_attempts

	def delay_ms(self, category: ErrorCategory, attempt: int) -> int:
		if category == ErrorCategory.CONFLICT:
			return min(500 * (attempt + 1), 2000)
		if category == ErrorCategory.RATE_LIMIT:
			return min(2000 * 2 ** attempt, 10000)
		return min(1000 * 2 ** attempt, 5000)

	def decide(self, context: ErrorContext, attempt: int) -> RetryDecision:
		"""
		Decide what to do after a failed attempt.

		Args:
			context: Classified failure
			attempt: Zero-based index of the failed attempt

		Returns:
			RetryDecision with the backoff delay when a retry is allowed
		"""
		if not context.retryable or attempt + 1 >= self.max_attempts:
			return RetryDecision(should_retry=False)
		return RetryDecision(should_retry=True, delay_ms=self.delay_ms(context.category, attempt))


async def run_with_retry(
	operation: Callable[[], Awaitable[T]],
	policy: Optional[RetryPolicy] = None,
	before_retry: Optional[Callable[[ErrorContext], Awaitable[bool]]] = None,
	sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
	label: str = "operation",
) -> T:
	"""
	Run ``operation`` until it succeeds or the policy gives up.

	Args:
		operation: Zero-argument coroutine factory, called once per attempt
		policy: Retry policy (default: 3 attempts)
		before_retry: Awaited after the backoff delay and before the next
			attempt. Returning False stops the loop without another attempt;
			run_with_retry then returns None. A failure here is terminal.
		sleep: Awaitable sleep taking seconds (injectable for tests)
		label: Name used in log lines

	Returns:
		The operation's result

	Raises:
		SaveError: On a non-retryable failure or when attempts are exhausted
	"""
	policy = policy or RetryPolicy()
	attempt = 0

	while True:
		try:
			return await operation()
		except Exception as e:
			context = classify_error(e)
			decision = policy.decide(context, attempt)

			if not decision.should_retry:
				if context.retryable:
					logger.error(
						f"{label} failed after {attempt + 1} attempts "
						f"({context.category.value}): {context.technical_message}"
					)
				else:
					logger.error(f"{label} failed ({context.category.value}): {context.technical_message}")
				raise SaveError(context, attempts=attempt + 1) from e

			logger.warning(
				f"{label} attempt {attempt + 1} failed ({context.category.value}), "
				f"retrying in {decision.delay_ms}ms"
			)
			await sleep(decision.delay_ms / 1000)

			if before_retry is not None:
				try:
					proceed = await before_retry(context)
				except Exception as refresh_error:
					refresh_context = classify_error(refresh_error)
					logger.error(f"{label}: refresh before retry failed: {refresh_context.technical_message}")
					raise SaveError(refresh_context, attempts=attempt + 1) from refresh_error
				if not proceed:
					logger.info(f"{label}: nothing left to write after refresh")
					return None

			attempt += 1

"""
Cache invalidation signals.

After a save commits, the orchestrator publishes which entity kinds were
touched so that readers holding cached copies can refetch them.
"""

import inspect
import logging
from enum import Enum
from typing import Awaitable, Callable, Iterable, Union

logger = logging.getLogger(__name__)


class EntityKind(str, Enum):
	"""Kinds of cached data a save can invalidate."""
	PLAN = "plan"
	FEATURE = "feature"
	COMPONENT = "component"


Subscriber = Callable[[frozenset[EntityKind]], Union[None, Awaitable[None]]]


class InvalidationBus:
	"""
	Fan-out of invalidation events to subscribers.

	Subscribers may be plain functions or coroutine functions. A failing
	subscriber is logged and does not stop delivery to the others.
	"""

	def __init__(self):
		self._subscribers: list[Subscriber] = []

	def subscribe(self, callback: Subscriber) -> Callable[[], None]:
		"""Register a callback. Returns a function that unsubscribes it."""
		self._subscribers.append(callback)

		def unsubscribe() -> None:
			if callback in self._subscribers:
				self._subscribers.remove(callback)

		return unsubscribe

	async def publish(self, kinds: Iterable[Union[EntityKind, str]]) -> frozenset[EntityKind]:
		event = frozenset(EntityKind(k) for k in kinds)
		if not event:
			return event

		logger.debug(f"Invalidating: {', '.join(sorted(k.value for k in event))}")
		for callback in list(self._subscribers):
			try:
				result = callback(event)
				if inspect.isawaitable(result):
					await result
			except Exception as e:
				logger.warning(f"Invalidation subscriber {callback!r} failed: {e}")
		return event

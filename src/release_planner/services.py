"""Store wiring shared by the CLI and the MCP server."""

import logging
from dataclasses import dataclass
from typing import Optional

from .catalog.store import FeatureStore, ProductStore
from .config import Config, get_config
from .plans.store import PlanStore
from .saving.batch import DependentWriteExecutor
from .saving.orchestrator import SaveOrchestrator
from .saving.retry import RetryPolicy
from .saving.signals import InvalidationBus

logger = logging.getLogger(__name__)


@dataclass
class Stores:
	"""The three stores, all backed by one SQLite file."""
	plans: PlanStore
	features: FeatureStore
	products: ProductStore

	@classmethod
	def open(cls, db_path: str, tolerance_ms: int = 1000) -> "Stores":
		return cls(
			plans=PlanStore(db_path, tolerance_ms),
			features=FeatureStore(db_path, tolerance_ms),
			products=ProductStore(db_path, tolerance_ms),
		)

	async def init(self) -> None:
		await self.plans.init()
		await self.features.init()
		await self.products.init()

	async def close(self) -> None:
		await self.plans.close()
		await self.features.close()
		await self.products.close()


def build_orchestrator(
	stores: Stores,
	config: Optional[Config] = None,
	signals: Optional[InvalidationBus] = None,
) -> SaveOrchestrator:
	"""Create a SaveOrchestrator over the SQLite stores using config tunables."""
	config = config or get_config()
	return SaveOrchestrator(
		plan_store=stores.plans,
		feature_store=stores.features,
		component_store=stores.products,
		policy=RetryPolicy(max_attempts=config.max_save_attempts),
		signals=signals,
		executor=DependentWriteExecutor(max_concurrency=config.dependent_write_concurrency),
	)


_stores: Optional[Stores] = None


async def get_stores(config: Optional[Config] = None) -> Stores:
	"""Get or create the global stores."""
	global _stores
	if _stores is None:
		config = config or get_config()
		_stores = Stores.open(str(config.db_path), config.stamp_tolerance_ms)
		await _stores.init()
		logger.info(f"Stores ready at {config.db_path}")
	return _stores


async def close_stores() -> None:
	global _stores
	if _stores is not None:
		await _stores.close()
		_stores = None

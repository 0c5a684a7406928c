"""Shared test fixtures and helpers for release-planner tests."""

import datetime as dt
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

from release_planner.catalog.models import ComponentVersion, Feature, FeatureStatus, Product
from release_planner.errors import NotFoundError
from release_planner.plans.models import Plan, PlanComponent, PlanPhase, PlanStatus
from release_planner.plans.store import PlanNotFoundError
from release_planner.saving.orchestrator import SaveOrchestrator
from release_planner.saving.signals import InvalidationBus

BASE_STAMP = dt.datetime(2025, 1, 10, 9, 0, 0, tzinfo=dt.timezone.utc)


def capture_tools(config: MagicMock, register_fn: Callable) -> dict:
	"""Register tools on a mock MCP and return the captured tool functions.

	Args:
		config: Config object to pass to the registration function
		register_fn: The registration function (e.g., register_plans_tools)

	Returns:
		Dict mapping tool name to the tool function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), config)
	return captured


def make_plan(plan_id: str = "plan-1", **overrides) -> Plan:
	"""Create a Plan with realistic content for testing."""
	data = dict(
		id=plan_id,
		name="Portal 2025.1",
		owner="alice",
		status=PlanStatus.PLANNED,
		start_date=dt.date(2025, 1, 1),
		end_date=dt.date(2025, 3, 31),
		description="First quarterly release",
		product_id="prod-1",
		phases=[
			PlanPhase(
				id="ph-1",
				name="Development",
				start_date=dt.date(2025, 1, 1),
				end_date=dt.date(2025, 2, 28),
			),
			PlanPhase(
				id="ph-2",
				name="QA",
				start_date=dt.date(2025, 3, 1),
				end_date=dt.date(2025, 3, 31),
			),
		],
		feature_ids=["feat-1"],
		components=[
			PlanComponent(component_id="web", current_version="2.3.0", final_version="2.3.1"),
		],
		calendar_ids=["cal-1"],
		created_at=BASE_STAMP,
		updated_at=BASE_STAMP,
	)
	data.update(overrides)
	return Plan(**data)


def make_product(product_id: str = "prod-1") -> Product:
	"""Create a Product with two component records."""
	return Product(
		id=product_id,
		name="Portal",
		components=[
			ComponentVersion(id="web", type="web", current_version="2.3.0", previous_version="2.2.0"),
			ComponentVersion(id="api", type="services", current_version="1.4.0", previous_version="1.3.2"),
		],
		updated_at=BASE_STAMP,
	)


def make_feature(feature_id: str, status: FeatureStatus = FeatureStatus.PLANNED) -> Feature:
	return Feature(id=feature_id, name=f"Feature {feature_id}", product_id="prod-1", status=status)


class FakePlanStore:
	"""In-memory plan store that can be scripted to fail."""

	def __init__(self, plan: Plan, failures: Optional[list[Exception]] = None, events: Optional[list] = None):
		self.plans = {plan.id: plan}
		self.failures = list(failures or [])
		self.events = events if events is not None else []
		self.update_calls: list[dict[str, Any]] = []
		self.get_calls = 0

	def bump(self, plan_id: str, **changes) -> Plan:
		"""Simulate another user saving the plan."""
		current = self.plans[plan_id]
		changes["updated_at"] = current.updated_at + dt.timedelta(seconds=30)
		self.plans[plan_id] = current.model_copy(update=changes)
		return self.plans[plan_id]

	async def get(self, plan_id: str) -> Plan:
		self.get_calls += 1
		self.events.append(("plan.get", plan_id))
		if plan_id not in self.plans:
			raise PlanNotFoundError(plan_id)
		return self.plans[plan_id]

	async def update(self, plan_id: str, changes: dict, expected_timestamp=None) -> Plan:
		self.update_calls.append({
			"plan_id": plan_id,
			"changes": dict(changes),
			"expected_timestamp": expected_timestamp,
		})
		self.events.append(("plan.update", plan_id))
		if self.failures:
			raise self.failures.pop(0)

		current = self.plans[plan_id]
		data = current.model_dump()
		data.update(changes)
		data["updated_at"] = current.updated_at + dt.timedelta(seconds=5)
		self.plans[plan_id] = Plan.model_validate(data)
		return self.plans[plan_id]


class FakeFeatureStore:
	"""In-memory feature status store; ``failures`` maps feature id to an error."""

	def __init__(self, failures: Optional[dict[str, Exception]] = None, events: Optional[list] = None):
		self.failures = dict(failures or {})
		self.events = events if events is not None else []
		self.calls: list[tuple[str, str]] = []

	async def update_status(self, feature_id: str, new_status, expected_timestamp=None) -> Feature:
		status = FeatureStatus(new_status)
		self.calls.append((feature_id, status.value))
		self.events.append(("feature.update_status", feature_id))
		if feature_id in self.failures:
			raise self.failures[feature_id]
		return make_feature(feature_id, status)


class FakeProductStore:
	"""In-memory product store recording component updates."""

	def __init__(self, product: Optional[Product] = None, failures: Optional[dict[str, Exception]] = None):
		product = product or make_product()
		self.products = {product.id: product}
		self.failures = dict(failures or {})
		self.calls: list[dict[str, Any]] = []

	async def get(self, product_id: str) -> Product:
		if product_id not in self.products:
			raise NotFoundError("Product", product_id)
		return self.products[product_id]

	async def update_components(
		self,
		product_id: str,
		components: list,
		partial_update: bool = False,
		expected_timestamp=None,
		advance_only: bool = False,
	) -> Product:
		records = [ComponentVersion.model_validate(c) for c in components]
		self.calls.append({
			"product_id": product_id,
			"components": records,
			"partial_update": partial_update,
			"advance_only": advance_only,
		})
		for record in records:
			if record.id in self.failures:
				raise self.failures[record.id]

		product = self.products[product_id]
		if partial_update:
			by_id = {c.id: c for c in product.components}
			for record in records:
				by_id[record.id] = record
			merged = list(by_id.values())
		else:
			merged = records
		self.products[product_id] = product.model_copy(update={"components": merged})
		return self.products[product_id]


class SleepRecorder:
	"""Stand-in for asyncio.sleep that records delays instead of waiting."""

	def __init__(self):
		self.delays: list[float] = []

	async def __call__(self, seconds: float) -> None:
		self.delays.append(seconds)


def make_orchestrator(
	plan_store: FakePlanStore,
	feature_store: Optional[FakeFeatureStore] = None,
	product_store: Optional[FakeProductStore] = None,
	signals: Optional[InvalidationBus] = None,
	sleep: Optional[SleepRecorder] = None,
) -> SaveOrchestrator:
	return SaveOrchestrator(
		plan_store=plan_store,
		feature_store=feature_store or FakeFeatureStore(),
		component_store=product_store or FakeProductStore(),
		signals=signals,
		sleep=sleep or SleepRecorder(),
	)

"""Tests for the SQLite plan store."""

import asyncio
import datetime as dt

import pytest
import pytest_asyncio

from release_planner.errors import DuplicateNameError
from release_planner.plans.models import PlanStatus
from release_planner.plans.store import (
	OptimisticLockError,
	PlanNotFoundError,
	PlanStore,
	PlanValidationError,
)
from release_planner.saving.classifier import ErrorCategory, classify_error

from .helpers import make_plan


@pytest_asyncio.fixture
async def store(tmp_path):
	plan_store = PlanStore(str(tmp_path / "plans.db"))
	await plan_store.init()
	yield plan_store
	await plan_store.close()


@pytest.mark.asyncio
async def test_create_and_get(store):
	created = await store.create_plan(make_plan())
	loaded = await store.get(created.id)

	assert loaded == created
	assert loaded.phases[1].name == "QA"
	assert loaded.updated_at.tzinfo is not None


@pytest.mark.asyncio
async def test_get_missing_raises_not_found(store):
	with pytest.raises(PlanNotFoundError) as exc:
		await store.get("nope")
	assert exc.value.status_code == 404
	assert await store.find("nope") is None


@pytest.mark.asyncio
async def test_update_applies_only_given_fields(store):
	created = await store.create_plan(make_plan())

	updated = await store.update(created.id, {"feature_ids": ["feat-1", "feat-2"]}, created.updated_at)

	assert updated.feature_ids == ["feat-1", "feat-2"]
	assert updated.name == created.name
	assert updated.components == created.components
	assert updated.updated_at >= created.updated_at
	assert (await store.get(created.id)).feature_ids == ["feat-1", "feat-2"]


@pytest.mark.asyncio
async def test_update_accepts_json_shaped_values(store):
	created = await store.create_plan(make_plan())
	updated = await store.update(created.id, {
		"status": "in_progress",
		"end_date": "2025-04-30",
		"components": [{"component_id": "api", "current_version": "1.4.0", "final_version": "1.5.0"}],
	})
	assert updated.status == PlanStatus.IN_PROGRESS
	assert updated.end_date == dt.date(2025, 4, 30)
	assert updated.components[0].component_id == "api"


@pytest.mark.asyncio
async def test_stale_stamp_conflicts(store):
	created = await store.create_plan(make_plan())
	stale = created.updated_at - dt.timedelta(seconds=10)

	with pytest.raises(OptimisticLockError) as exc:
		await store.update(created.id, {"name": "Other"}, stale)
	assert classify_error(exc.value).category == ErrorCategory.CONFLICT


@pytest.mark.asyncio
async def test_stamp_within_tolerance_is_accepted(store):
	created = await store.create_plan(make_plan())
	slightly_old = created.updated_at - dt.timedelta(milliseconds=800)

	updated = await store.update(created.id, {"name": "Other"}, slightly_old.isoformat())
	assert updated.name == "Other"


@pytest.mark.asyncio
async def test_unknown_and_protected_fields_rejected(store):
	created = await store.create_plan(make_plan())

	with pytest.raises(PlanValidationError, match="Unknown plan fields: budget"):
		await store.update(created.id, {"budget": 10})
	with pytest.raises(PlanValidationError, match="cannot be updated"):
		await store.update(created.id, {"id": "other"})


@pytest.mark.asyncio
async def test_malformed_values_rejected(store):
	created = await store.create_plan(make_plan())

	with pytest.raises(PlanValidationError) as exc:
		await store.update(created.id, {"end_date": "2024-01-01"})
	assert classify_error(exc.value).category == ErrorCategory.VALIDATION

	with pytest.raises(PlanValidationError):
		await store.update(created.id, {"owner": ""})


@pytest.mark.asyncio
async def test_duplicate_names(store):
	first = await store.create_plan(make_plan("plan-1", name="R1"))
	await store.create_plan(make_plan("plan-2", name="R2"))

	with pytest.raises(DuplicateNameError) as exc:
		await store.create_plan(make_plan("plan-3", name="R1"))
	assert exc.value.code == "DUPLICATE_PLAN_NAME"

	with pytest.raises(DuplicateNameError):
		await store.update("plan-2", {"name": "R1"})

	# Renaming to its own name is not a clash
	await store.update(first.id, {"name": "R1", "description": "same name"})


@pytest.mark.asyncio
async def test_list_and_delete(store):
	await store.create_plan(make_plan("plan-1", name="R1"))
	await store.create_plan(make_plan("plan-2", name="R2", status=PlanStatus.DONE, product_id="prod-2"))

	assert {p.id for p in await store.list_plans()} == {"plan-1", "plan-2"}
	assert [p.id for p in await store.list_plans(status=PlanStatus.DONE)] == ["plan-2"]
	assert [p.id for p in await store.list_plans(product_id="prod-1")] == ["plan-1"]

	await store.delete_plan("plan-1")
	assert [p.id for p in await store.list_plans()] == ["plan-2"]


@pytest.mark.asyncio
async def test_concurrent_updates_to_different_sections_both_land(store):
	created = await store.create_plan(make_plan())

	await asyncio.gather(
		store.update(created.id, {"feature_ids": ["feat-1", "feat-9"]}, created.updated_at),
		store.update(created.id, {"calendar_ids": ["cal-1", "cal-9"]}, created.updated_at),
	)

	stored = await store.get(created.id)
	assert stored.feature_ids == ["feat-1", "feat-9"]
	assert stored.calendar_ids == ["cal-1", "cal-9"]


@pytest.mark.asyncio
async def test_lazy_init_opens_one_connection(tmp_path):
	plan_store = PlanStore(str(tmp_path / "lazy.db"))
	try:
		first, second = await asyncio.gather(plan_store.connection(), plan_store.connection())
		assert first is second
	finally:
		await plan_store.close()

"""Tests for the section diff engine."""

import datetime as dt

import pytest

from release_planner.plans.models import PlanComponent, PlanStatus
from release_planner.saving.sections import (
	SECTION_FIELDS,
	PlanSection,
	build_plan_diff,
	build_section_diff,
	sections_in,
	values_equal,
)

from .helpers import make_plan


def test_sections_partition_editable_fields():
	seen = [name for names in SECTION_FIELDS.values() for name in names]
	assert len(seen) == len(set(seen))


def test_unchanged_section_is_noop():
	plan = make_plan()
	diff = build_section_diff("general", plan, plan.model_copy(deep=True))
	assert diff.is_noop
	assert diff.sections == (PlanSection.GENERAL,)


def test_general_change_only_carries_changed_fields():
	plan = make_plan()
	diff = build_section_diff(PlanSection.GENERAL, plan, {"name": "Portal 2025.1b", "owner": "alice"})
	assert diff.changes == {"name": "Portal 2025.1b"}


def test_components_diff_never_carries_features():
	plan = make_plan()
	local = {
		"feature_ids": ["feat-1", "feat-2"],
		"components": [
			{"component_id": "web", "current_version": "2.3.0", "final_version": "2.4.0"},
		],
	}
	diff = build_section_diff("components", plan, local)
	assert list(diff.changes) == ["components"]
	assert diff.changes["components"][0]["final_version"] == "2.4.0"


def test_features_diff_never_carries_components():
	plan = make_plan()
	local = plan.model_copy(update={
		"feature_ids": ["feat-1", "feat-2"],
		"components": [PlanComponent(component_id="api", current_version="1.4.0", final_version="1.5.0")],
	})
	diff = build_section_diff("features", plan, local)
	assert diff.changes == {"feature_ids": ["feat-1", "feat-2"]}


def test_feature_order_is_ignored():
	plan = make_plan(feature_ids=["feat-1", "feat-2"])
	diff = build_section_diff("features", plan, {"feature_ids": ["feat-2", "feat-1"]})
	assert diff.is_noop


def test_component_order_is_significant():
	plan = make_plan(components=[
		PlanComponent(component_id="web", current_version="2.3.0", final_version="2.4.0"),
		PlanComponent(component_id="api", current_version="1.4.0", final_version="1.5.0"),
	])
	reordered = list(reversed(plan.components))
	assert not build_section_diff("components", plan, {"components": reordered}).is_noop


def test_plain_values_compare_equal_to_models():
	"""JSON input from a client matches the model values it round-trips from."""
	plan = make_plan()
	local = {
		"status": "planned",
		"start_date": "2025-01-01",
		"phases": [p.model_dump(mode="json") for p in plan.phases],
	}
	assert build_section_diff("general", plan, local).is_noop


def test_changed_values_are_json_shaped():
	plan = make_plan()
	diff = build_section_diff("general", plan, {
		"status": PlanStatus.IN_PROGRESS,
		"end_date": dt.date(2025, 4, 15),
	})
	assert diff.changes == {"status": "in_progress", "end_date": "2025-04-15"}


def test_unknown_section_rejected():
	with pytest.raises(ValueError, match="Unknown plan section"):
		build_section_diff("budget", make_plan(), {})


def test_plan_diff_merges_sections():
	plan = make_plan()
	local = {"name": "Renamed", "feature_ids": ["feat-1", "feat-3"], "calendar_ids": ["cal-1"]}
	diff = build_plan_diff(plan, local)
	assert diff.changes == {"name": "Renamed", "feature_ids": ["feat-1", "feat-3"]}
	assert set(diff.sections) == set(PlanSection)


def test_sections_in_detects_present_sections():
	assert sections_in({"name": "x", "milestones": []}) == [PlanSection.GENERAL, PlanSection.REFERENCES]


def test_values_equal_identity_shortcut():
	value = ["a"]
	assert values_equal("feature_ids", value, value)

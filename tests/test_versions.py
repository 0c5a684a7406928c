"""Tests for component version checks."""

import pytest

from release_planner.plans.models import PlanComponent
from release_planner.saving.classifier import SectionValidationError
from release_planner.saving.versions import (
	compare_versions,
	is_valid_version,
	normalize_version,
	validate_component_versions,
)


@pytest.mark.parametrize("version,expected", [
	("1", (1, 0, 0, 0)),
	("1.2", (1, 2, 0, 0)),
	("1.2.3", (1, 2, 3, 0)),
	("1.2.3.4", (1, 2, 3, 4)),
	("1.2.3.4.5", (1, 2, 3, 4)),
	(" 2.0.1 ", (2, 0, 1, 0)),
	("2.0.beta", (2, 0, 0, 0)),
	("3.1rc2", (3, 1, 0, 0)),
	("", (0, 0, 0, 0)),
])
def test_normalize_version(version, expected):
	assert normalize_version(version) == expected


def test_compare_is_numeric_per_part():
	assert compare_versions("1.10", "1.2") == 1
	assert compare_versions("1.2", "1.10") == -1
	assert compare_versions("1.0", "1.0.0.0") == 0


def test_version_format():
	assert is_valid_version("1.0.0")
	assert is_valid_version("2.4")
	assert is_valid_version("1.2.3.4")
	assert is_valid_version("1.0.0-rc.1")
	assert not is_valid_version("v1.0")
	assert not is_valid_version("")
	assert not is_valid_version("1..2")


def test_same_version_rejected():
	with pytest.raises(SectionValidationError) as exc:
		validate_component_versions([
			{"component_id": "web", "current_version": "1.0.0", "final_version": "1.0.0"},
		])
	assert exc.value.field == "components[0].final_version"


def test_increase_accepted():
	result = validate_component_versions([
		{"component_id": "web", "current_version": "1.0.0", "final_version": "1.0.1"},
		{"component_id": "api", "current_version": "1.2", "final_version": "1.10"},
	])
	assert [c.component_id for c in result] == ["web", "api"]
	assert all(isinstance(c, PlanComponent) for c in result)


def test_regression_names_the_offending_index():
	with pytest.raises(SectionValidationError) as exc:
		validate_component_versions([
			PlanComponent(component_id="web", current_version="2.3.0", final_version="2.4.0"),
			PlanComponent(component_id="api", current_version="1.4.0", final_version="1.3.9"),
		])
	assert exc.value.field == "components[1].final_version"
	assert "1.4.0" in exc.value.message


def test_empty_current_version_skips_comparison():
	validate_component_versions([{"component_id": "web", "current_version": "", "final_version": "0.1.0"}])


def test_empty_final_version_rejected():
	with pytest.raises(SectionValidationError) as exc:
		validate_component_versions([{"component_id": "web", "current_version": "1.0", "final_version": " "}])
	assert exc.value.field == "components[0].final_version"


def test_missing_component_id_rejected():
	with pytest.raises(SectionValidationError) as exc:
		validate_component_versions([{"component_id": "", "final_version": "1.0"}])
	assert exc.value.field == "components[0].component_id"


def test_duplicate_component_rejected():
	with pytest.raises(SectionValidationError) as exc:
		validate_component_versions([
			{"component_id": "web", "current_version": "1.0", "final_version": "1.1"},
			{"component_id": "web", "current_version": "1.0", "final_version": "1.2"},
		])
	assert exc.value.field == "components[1].component_id"

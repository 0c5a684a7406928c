"""Tests for the Rich plan views."""

from rich.console import Console

from release_planner.errors import NotFoundError
from release_planner.plans.models import PlanMilestone
from release_planner.saving.batch import DependentUpdateResult
from release_planner.saving.classifier import ErrorCategory, classify_error
from release_planner.saving.orchestrator import SaveReport
from release_planner.saving.sections import PlanSection
from release_planner.saving.signals import EntityKind
from release_planner.visualizer import render_plan, render_plan_list, render_save_report

from .helpers import make_plan


def _console() -> Console:
	return Console(record=True, width=120)


def test_render_plan_list_empty():
	console = _console()
	render_plan_list([], console=console)
	assert "No release plans" in console.export_text()


def test_render_plan_list_rows():
	console = _console()
	render_plan_list([make_plan(), make_plan("plan-2", name="Portal 2025.2")], console=console)
	text = console.export_text()
	assert "plan-1" in text
	assert "Portal 2025.2" in text


def test_render_plan_sections():
	console = _console()
	plan = make_plan(milestones=[PlanMilestone(name="Code freeze", date="2025-02-28")])
	render_plan(plan, console=console)
	text = console.export_text()
	assert "Development" in text
	assert "feat-1" in text
	assert "web: 2.3.0" in text
	assert "Code freeze" in text


def test_render_save_report_with_failure():
	console = _console()
	failure = DependentUpdateResult(
		kind=EntityKind.FEATURE,
		entity_id="feat-9",
		action="status:assigned",
		success=False,
		error=classify_error(NotFoundError("Feature", "feat-9")),
	)
	report = SaveReport(
		plan_id="plan-1",
		sections=(PlanSection.FEATURES,),
		written=True,
		plan=make_plan(),
		attempts=1,
		changes={"feature_ids": ["feat-1", "feat-9"]},
		dependent_results=[failure],
	)
	assert failure.category == ErrorCategory.NOT_FOUND

	render_save_report(report, console=console)
	text = console.export_text()
	assert "feature_ids" in text
	assert "FAIL" in text
	assert "feat-9" in text


def test_render_save_report_noop():
	console = _console()
	report = SaveReport(plan_id="plan-1", sections=(PlanSection.GENERAL,), written=False, plan=make_plan())
	render_save_report(report, console=console)
	assert "No changes to save" in console.export_text()

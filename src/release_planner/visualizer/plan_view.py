"""Rich views for release plans and save reports."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..plans.models import Plan, PlanStatus
from ..saving.orchestrator import SaveReport

STATUS_STYLES = {
	PlanStatus.PLANNED: "[dim]planned[/dim]",
	PlanStatus.IN_PROGRESS: "[yellow]in progress[/yellow]",
	PlanStatus.DONE: "[green]done[/green]",
	PlanStatus.PAUSED: "[red]paused[/red]",
}


def render_plan_list(plans: list[Plan], console: Optional[Console] = None) -> None:
	"""Render plans as a table."""
	console = console or Console()

	if not plans:
		console.print("[dim]No release plans.[/dim]")
		return

	table = Table(title="Release plans")
	table.add_column("ID", style="cyan", no_wrap=True)
	table.add_column("Name")
	table.add_column("Owner")
	table.add_column("Status")
	table.add_column("Period")
	table.add_column("Features", justify="right")
	table.add_column("Components", justify="right")

	for plan in plans:
		table.add_row(
			plan.id,
			plan.name,
			plan.owner,
			STATUS_STYLES.get(plan.status, plan.status.value),
			f"{plan.start_date.isoformat()} → {plan.end_date.isoformat()}",
			str(len(plan.feature_ids)),
			str(len(plan.components)),
		)

	console.print(table)


def render_plan(plan: Plan, console: Optional[Console] = None) -> None:
	"""Render a plan as a Rich Tree of its sections."""
	console = console or Console()

	tree = Tree(
		f"[bold]{plan.name}[/bold]  {STATUS_STYLES.get(plan.status, plan.status.value)}  "
		f"[dim]({plan.start_date.isoformat()} → {plan.end_date.isoformat()}, owner {plan.owner})[/dim]"
	)

	if plan.phases:
		phases = tree.add("[bold]Phases[/bold]")
		for phase in plan.phases:
			period = ""
			if phase.start_date and phase.end_date:
				period = f" [dim]{phase.start_date.isoformat()} → {phase.end_date.isoformat()}[/dim]"
			phases.add(f"{phase.name}{period}")

	features = tree.add(f"[bold]Features[/bold] [dim]({len(plan.feature_ids)})[/dim]")
	for feature_id in plan.feature_ids:
		features.add(feature_id)

	components = tree.add(f"[bold]Components[/bold] [dim]({len(plan.components)})[/dim]")
	for component in plan.components:
		current = component.current_version or "-"
		components.add(f"{component.component_id}: {current} → [green]{component.final_version}[/green]")

	if plan.milestones:
		milestones = tree.add("[bold]Milestones[/bold]")
		for milestone in sorted(plan.milestones, key=lambda m: m.date):
			milestones.add(f"{milestone.date.isoformat()}  {milestone.name}")

	if plan.references:
		references = tree.add(f"[bold]References[/bold] [dim]({len(plan.references)})[/dim]")
		for reference in plan.references:
			references.add(f"[{reference.type.value}] {reference.title}")

	console.print(tree)
	console.print(f"[dim]updated_at {plan.updated_at.isoformat()}[/dim]")


def render_save_report(report: SaveReport, console: Optional[Console] = None) -> None:
	"""Render a summary panel for a save."""
	console = console or Console()

	lines = []
	sections = ", ".join(s.value for s in report.sections)
	if not report.written:
		lines.append(f"[dim]No changes to save ({sections}).[/dim]")
	else:
		lines.append(f"[bold]Sections:[/bold] {sections}")
		lines.append(f"[bold]Fields:[/bold] {', '.join(sorted(report.changes))}")
		lines.append(f"[bold]Attempts:[/bold] {report.attempts}")

	if report.dependent_results:
		lines.append("")
		lines.append("[bold]Dependent updates:[/bold]")
		for result in report.dependent_results:
			if result.success:
				lines.append(f"  [green]OK[/green]   {result.kind.value} {result.entity_id} ({result.action})")
			else:
				message = result.error.user_message if result.error else "failed"
				lines.append(f"  [red]FAIL[/red] {result.kind.value} {result.entity_id} ({result.action}): {message}")

	border = "green" if report.fully_applied else "yellow"
	console.print(Panel("\n".join(lines), title=f"Save: {report.plan_id}", border_style=border))

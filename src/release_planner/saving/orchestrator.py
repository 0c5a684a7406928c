"""
Save Orchestrator - commits plan edits and their cross-entity effects.

A save runs in strict order:

1. validate the edited section(s) locally
2. diff against the baseline; an empty diff ends the save with no writes
3. write the plan with optimistic locking, retrying conflicts, throttling
   and network failures after refreshing the baseline
4. only after that write commits, update the status of added/removed
   features and advance the product components whose final version changed
5. publish cache invalidation for every entity kind that was written

Dependent writes in step 4 are attempted once each; their failures are
reported per entity and never undo the plan write.
A component write is accepted only if the component is still at the version
it was read at; otherwise it fails as a conflict and the version stays put.
"""

import asyncio
import datetime as dt
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Union

from ..catalog.models import ComponentVersion, FeatureStatus, Product
from ..errors import NotFoundError
from ..plans.models import Plan, PlanComponent, PlanStatus, ReferenceType
from .batch import DependentUpdate, DependentUpdateResult, DependentWriteExecutor
from .classifier import SaveError, SectionValidationError, classify_error
from .retry import RetryPolicy, run_with_retry
from .sections import (
	SECTION_FIELDS,
	PlanSection,
	SectionDiff,
	build_plan_diff,
	parse_section,
	sections_in,
	to_plain,
)
from .signals import EntityKind, InvalidationBus
from .stamps import Stamp
from .versions import check_version_increase, validate_component_versions

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

LocalData = Union[Plan, Mapping[str, Any]]


class PlanStorePort(Protocol):
	async def get(self, plan_id: str) -> Plan: ...

	async def update(
		self,
		plan_id: str,
		changes: dict[str, Any],
		expected_timestamp: Optional[Stamp] = None,
	) -> Plan: ...


class FeatureStatusPort(Protocol):
	async def update_status(
		self,
		feature_id: str,
		new_status: Union[FeatureStatus, str],
		expected_timestamp: Optional[Stamp] = None,
	) -> Any: ...


class ComponentStorePort(Protocol):
	async def get(self, product_id: str) -> Product: ...

	async def update_components(
		self,
		product_id: str,
		components: list[Any],
		partial_update: bool = False,
		expected_timestamp: Optional[Stamp] = None,
		advance_only: bool = False,
	) -> Product: ...


class PlanBaseline:
	"""
	The caller's last server-confirmed copy of a plan.

	Owned by the caller and handed to the orchestrator for each save. It
	cannot be replaced while a plan write is in flight.
	"""

	def __init__(self, plan: Plan):
		self._plan = plan
		self._in_flight = False

	@property
	def plan(self) -> Plan:
		return self._plan

	@property
	def in_flight(self) -> bool:
		return self._in_flight

	def replace(self, plan: Plan) -> None:
		if self._in_flight:
			raise RuntimeError(f"Baseline for plan {self._plan.id} cannot change during a write")
		if plan.id != self._plan.id:
			raise ValueError(f"Baseline is for plan {self._plan.id}, got {plan.id}")
		self._plan = plan

	@contextmanager
	def writing(self):
		self._in_flight = True
		try:
			yield self._plan
		finally:
			self._in_flight = False


@dataclass
class SaveReport:
	"""Outcome of a save."""
	plan_id: str
	sections: tuple[PlanSection, ...]
	written: bool
	plan: Plan
	attempts: int = 0
	changes: dict[str, Any] = field(default_factory=dict)
	dependent_results: list[DependentUpdateResult] = field(default_factory=list)
	invalidated: frozenset[EntityKind] = frozenset()

	@property
	def dependent_failures(self) -> list[DependentUpdateResult]:
		return [r for r in self.dependent_results if not r.success]

	@property
	def fully_applied(self) -> bool:
		"""True when the plan write and every dependent write succeeded."""
		return not self.dependent_failures

	def to_dict(self) -> dict:
		return {
			"plan_id": self.plan_id,
			"sections": [s.value for s in self.sections],
			"written": self.written,
			"attempts": self.attempts,
			"changed_fields": sorted(self.changes),
			"updated_at": self.plan.updated_at.isoformat(),
			"dependent_results": [r.to_dict() for r in self.dependent_results],
			"invalidated": sorted(k.value for k in self.invalidated),
		}


# =============================================================================
# Section validation
# =============================================================================


def _required_text(field_name: str, value: Any) -> None:
	if value is None or not str(value).strip():
		raise SectionValidationError(field_name, "is required")


def _parse_date(field_name: str, value: Any, required: bool = True) -> Optional[dt.date]:
	if value is None or value == "":
		if required:
			raise SectionValidationError(field_name, "is required")
		return None
	if isinstance(value, dt.datetime):
		return value.date()
	if isinstance(value, dt.date):
		return value
	text = str(value).strip()
	if not DATE_PATTERN.match(text):
		raise SectionValidationError(field_name, f"'{value}' is not a valid date (YYYY-MM-DD)")
	try:
		return dt.date.fromisoformat(text)
	except ValueError:
		raise SectionValidationError(field_name, f"'{value}' is not a valid date (YYYY-MM-DD)") from None


def _validate_general(values: Mapping[str, Any]) -> None:
	_required_text("name", values.get("name"))
	_required_text("owner", values.get("owner"))

	status = values.get("status")
	valid_statuses = {s.value for s in PlanStatus}
	if to_plain(status) not in valid_statuses:
		raise SectionValidationError(
			"status", f"'{to_plain(status)}' is not one of {', '.join(sorted(valid_statuses))}"
		)

	_required_text("product_id", values.get("product_id"))

	start = _parse_date("start_date", values.get("start_date"))
	end = _parse_date("end_date", values.get("end_date"))
	if start > end:
		raise SectionValidationError("end_date", "must be on or after start_date")

	for index, phase in enumerate(to_plain(values.get("phases") or [])):
		prefix = f"phases[{index}]"
		if not isinstance(phase, Mapping):
			raise SectionValidationError(prefix, "must be an object")
		_required_text(f"{prefix}.name", phase.get("name"))
		phase_start = _parse_date(f"{prefix}.start_date", phase.get("start_date"), required=False)
		phase_end = _parse_date(f"{prefix}.end_date", phase.get("end_date"), required=False)
		if phase_start and phase_end and phase_start > phase_end:
			raise SectionValidationError(f"{prefix}.end_date", "must be on or after the phase start")


def _validate_ids(field_name: str, values: Mapping[str, Any]) -> None:
	ids = values.get(field_name)
	if ids is None:
		return
	if not isinstance(ids, (list, tuple)):
		raise SectionValidationError(field_name, "must be a list of ids")
	for index, item in enumerate(ids):
		if not isinstance(item, str) or not item.strip():
			raise SectionValidationError(f"{field_name}[{index}]", "must be a non-empty id")


def _validate_components(values: Mapping[str, Any], product_id: Optional[str]) -> None:
	components = values.get("components")
	if components is None:
		return
	if not isinstance(components, (list, tuple)):
		raise SectionValidationError("components", "must be a list")
	validate_component_versions(components)
	if components and not product_id:
		raise SectionValidationError("product_id", "a product is required before assigning components")


def _validate_references(values: Mapping[str, Any]) -> None:
	valid_types = {t.value for t in ReferenceType}
	for index, reference in enumerate(to_plain(values.get("references") or [])):
		prefix = f"references[{index}]"
		if not isinstance(reference, Mapping):
			raise SectionValidationError(prefix, "must be an object")
		if reference.get("type") not in valid_types:
			raise SectionValidationError(
				f"{prefix}.type", f"'{reference.get('type')}' is not one of {', '.join(sorted(valid_types))}"
			)
		_required_text(f"{prefix}.title", reference.get("title"))
		_parse_date(
			f"{prefix}.date",
			reference.get("date"),
			required=reference.get("type") == ReferenceType.MILESTONE.value,
		)

	for index, milestone in enumerate(to_plain(values.get("milestones") or [])):
		prefix = f"milestones[{index}]"
		if not isinstance(milestone, Mapping):
			raise SectionValidationError(prefix, "must be an object")
		_required_text(f"{prefix}.name", milestone.get("name"))
		_parse_date(f"{prefix}.date", milestone.get("date"))


def _section_values(section: PlanSection, baseline: Plan, local: LocalData) -> dict[str, Any]:
	"""The section's fields as they would be after the save."""
	values = {}
	for name in SECTION_FIELDS[section]:
		if isinstance(local, Plan):
			values[name] = getattr(local, name)
		elif name in local:
			values[name] = local[name]
		else:
			values[name] = getattr(baseline, name)
	return values


def validate_section(section: Union[PlanSection, str], baseline: Plan, local: LocalData) -> None:
	"""
	Structural validation of one section before anything is written.

	Raises:
		SectionValidationError: Naming the offending field
	"""
	try:
		section = parse_section(section)
	except ValueError as e:
		raise SectionValidationError("section", str(e)) from None

	values = _section_values(section, baseline, local)

	if section == PlanSection.GENERAL:
		_validate_general(values)
	elif section == PlanSection.FEATURES:
		_validate_ids("feature_ids", values)
	elif section == PlanSection.CALENDARS:
		_validate_ids("calendar_ids", values)
	elif section == PlanSection.COMPONENTS:
		if isinstance(local, Plan):
			product_id = local.product_id
		else:
			product_id = local.get("product_id", baseline.product_id)
		_validate_components(values, product_id)
	elif section == PlanSection.REFERENCES:
		_validate_references(values)


# =============================================================================
# Orchestrator
# =============================================================================


class SaveOrchestrator:
	"""
	Coordinates a plan write with its dependent feature and component writes.

	Usage:
		orchestrator = SaveOrchestrator(plan_store, feature_store, product_store)
		baseline = PlanBaseline(await plan_store.get(plan_id))

		report = await orchestrator.save_section(baseline, "features", {"feature_ids": [...]})
		for failure in report.dependent_failures:
			...
	"""

	def __init__(
		self,
		plan_store: PlanStorePort,
		feature_store: FeatureStatusPort,
		component_store: ComponentStorePort,
		policy: Optional[RetryPolicy] = None,
		signals: Optional[InvalidationBus] = None,
		sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
		executor: Optional[DependentWriteExecutor] = None,
	):
		self.plan_store = plan_store
		self.feature_store = feature_store
		self.component_store = component_store
		self.policy = policy or RetryPolicy()
		self.signals = signals or InvalidationBus()
		self.sleep = sleep
		self.executor = executor or DependentWriteExecutor()

	async def save_section(
		self,
		baseline: PlanBaseline,
		section: Union[PlanSection, str],
		local: LocalData,
	) -> SaveReport:
		"""
		Save one section of a plan.

		Args:
			baseline: Caller-owned last-synced plan; replaced on success
			section: Section being saved
			local: Edited values (a full Plan or a mapping with the section's fields)

		Returns:
			SaveReport (``written`` is False when there was nothing to save)

		Raises:
			SaveError: Validation failure, or a plan write that could not be
				completed; ``str(error)`` is safe to show to the user
		"""
		try:
			validate_section(section, baseline.plan, local)
		except SectionValidationError as e:
			raise self._validation_failure(e, getattr(section, "value", section)) from e

		section = parse_section(section)
		return await self._commit(baseline, (section,), local)

	async def save_all(self, baseline: PlanBaseline, local: LocalData) -> SaveReport:
		"""
		Commit every edited section in a single plan write.

		All sections are validated before anything is written. With a mapping,
		only sections that have at least one field present are considered.
		"""
		sections = list(PlanSection) if isinstance(local, Plan) else sections_in(local)

		for section in sections:
			try:
				validate_section(section, baseline.plan, local)
			except SectionValidationError as e:
				raise self._validation_failure(e, section.value) from e

		return await self._commit(baseline, tuple(sections), local)

	def _validation_failure(self, error: SectionValidationError, section: str) -> SaveError:
		context = classify_error(error)
		logger.info(f"Rejected {section} save: {error}")
		return SaveError(context, attempts=0, section=section)

	async def _commit(
		self,
		baseline: PlanBaseline,
		sections: tuple[PlanSection, ...],
		local: LocalData,
	) -> SaveReport:
		plan_id = baseline.plan.id
		label = f"Save {'+'.join(s.value for s in sections)} of plan {plan_id}"

		diff = build_plan_diff(baseline.plan, local, sections)
		if diff.is_noop:
			logger.info(f"{label}: no changes")
			return SaveReport(plan_id=plan_id, sections=sections, written=False, plan=baseline.plan)

		state = {"diff": diff, "base": baseline.plan, "writes": 0}

		async def write() -> Plan:
			current: SectionDiff = state["diff"]
			state["writes"] += 1
			with baseline.writing() as base:
				state["base"] = base
				return await self.plan_store.update(plan_id, current.changes, base.updated_at)

		async def refresh(context) -> bool:
			fresh = await self.plan_store.get(plan_id)
			baseline.replace(fresh)
			state["diff"] = build_plan_diff(fresh, local, sections)
			logger.info(f"{label}: baseline refreshed after {context.category.value}")
			return not state["diff"].is_noop

		try:
			saved = await run_with_retry(
				write,
				policy=self.policy,
				before_retry=refresh,
				sleep=self.sleep,
				label=label,
			)
		except SaveError as e:
			e.section = "+".join(s.value for s in sections)
			raise

		if saved is None:
			return SaveReport(
				plan_id=plan_id,
				sections=sections,
				written=False,
				plan=baseline.plan,
				attempts=state["writes"],
			)

		written_diff: SectionDiff = state["diff"]
		write_base: Plan = state["base"]
		baseline.replace(saved)
		logger.info(
			f"{label}: committed {', '.join(written_diff.fields)} "
			f"in {state['writes']} attempt(s)"
		)

		updates = []
		if written_diff.touches("feature_ids"):
			updates.extend(self._feature_updates(write_base, saved))
		if written_diff.touches("components"):
			updates.extend(self._component_updates(write_base, saved))

		summary = await self.executor.execute(updates)
		if summary.failed:
			logger.warning(f"{label}: {summary.failed}/{summary.total} dependent writes failed")

		touched = {EntityKind.PLAN}
		touched.update(r.kind for r in summary.results)
		invalidated = await self.signals.publish(touched)

		return SaveReport(
			plan_id=plan_id,
			sections=sections,
			written=True,
			plan=saved,
			attempts=state["writes"],
			changes=written_diff.changes,
			dependent_results=summary.results,
			invalidated=invalidated,
		)

	def _feature_updates(self, before: Plan, after: Plan) -> list[DependentUpdate]:
		"""Assign added features, complete removed ones."""
		previous = set(before.feature_ids)
		current = set(after.feature_ids)
		added = [f for f in dict.fromkeys(after.feature_ids) if f not in previous]
		removed = [f for f in dict.fromkeys(before.feature_ids) if f not in current]

		updates = []
		for feature_id, status in [(f, FeatureStatus.ASSIGNED) for f in added] + [
			(f, FeatureStatus.COMPLETED) for f in removed
		]:
			updates.append(DependentUpdate(
				kind=EntityKind.FEATURE,
				entity_id=feature_id,
				action=f"status:{status.value}",
				run=self._status_writer(feature_id, status),
			))
		return updates

	def _status_writer(self, feature_id: str, status: FeatureStatus):
		async def run():
			return await self.feature_store.update_status(feature_id, status)
		return run

	def _component_updates(self, before: Plan, after: Plan) -> list[DependentUpdate]:
		"""Advance the product components whose final version changed."""
		previous = {c.component_id: c for c in before.components}
		updates = []
		for index, component in enumerate(after.components):
			old = previous.get(component.component_id)
			if old is not None and old.final_version == component.final_version:
				continue
			updates.append(DependentUpdate(
				kind=EntityKind.COMPONENT,
				entity_id=component.component_id,
				action=f"version:{component.final_version}",
				run=self._component_writer(after.product_id, index, component),
			))
		return updates

	def _component_writer(self, product_id: str, index: int, assignment: PlanComponent):
		async def run() -> Product:
			product = await self.component_store.get(product_id)
			record: Optional[ComponentVersion] = product.get_component(assignment.component_id)
			if record is None:
				raise NotFoundError("Component", assignment.component_id)

			check_version_increase(
				f"components[{index}].final_version",
				assignment.final_version,
				record.current_version,
			)
			return await self.component_store.update_components(
				product_id,
				[record.advanced_to(assignment.final_version)],
				partial_update=True,
				advance_only=True,
			)
		return run

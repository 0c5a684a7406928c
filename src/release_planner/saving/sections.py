"""
Section Diff Engine - minimal partial payloads per plan section.

A plan is edited and saved one section at a time. Each section owns a fixed
set of plan fields; a diff for one section never carries fields of another,
so concurrent edits to different sections do not collide.
"""

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import BaseModel

from ..plans.models import Plan


class PlanSection(str, Enum):
	"""Independently saved parts of a plan."""
	GENERAL = "general"
	FEATURES = "features"
	COMPONENTS = "components"
	CALENDARS = "calendars"
	REFERENCES = "references"


SECTION_FIELDS: dict[PlanSection, tuple[str, ...]] = {
	PlanSection.GENERAL: (
		"name",
		"owner",
		"status",
		"start_date",
		"end_date",
		"description",
		"product_id",
		"it_owner",
		"phases",
	),
	PlanSection.FEATURES: ("feature_ids",),
	PlanSection.COMPONENTS: ("components",),
	PlanSection.CALENDARS: ("calendar_ids",),
	PlanSection.REFERENCES: ("references", "milestones"),
}

# Id lists whose order carries no meaning
UNORDERED_FIELDS = frozenset({"feature_ids", "calendar_ids"})


@dataclass
class SectionDiff:
	"""Changed fields for one section (or several, for a full-plan commit)."""
	sections: tuple[PlanSection, ...]
	changes: dict[str, Any] = field(default_factory=dict)

	@property
	def is_noop(self) -> bool:
		return not self.changes

	@property
	def fields(self) -> list[str]:
		return sorted(self.changes)

	def touches(self, field_name: str) -> bool:
		return field_name in self.changes


def parse_section(section: Union[PlanSection, str]) -> PlanSection:
	"""Resolve a section name, raising ValueError for unknown names."""
	try:
		return PlanSection(section)
	except ValueError:
		valid = ", ".join(s.value for s in PlanSection)
		raise ValueError(f"Unknown plan section '{section}' (expected one of: {valid})") from None


def to_plain(value: Any) -> Any:
	"""Convert models, enums and dates into JSON-shaped values."""
	if isinstance(value, BaseModel):
		return value.model_dump(mode="json")
	if isinstance(value, Enum):
		return value.value
	if isinstance(value, (dt.date, dt.datetime)):
		return value.isoformat()
	if isinstance(value, Mapping):
		return {str(k): to_plain(v) for k, v in value.items()}
	if isinstance(value, (list, tuple)):
		return [to_plain(v) for v in value]
	return value


def values_equal(field_name: str, baseline: Any, local: Any) -> bool:
	"""
	Compare a field's baseline and local values.

	Identity and primitive equality are tried first; structural comparison
	of the normalised values only runs when those fail.
	"""
	if baseline is local or baseline == local:
		return True

	left = to_plain(baseline)
	right = to_plain(local)
	if field_name in UNORDERED_FIELDS and isinstance(left, list) and isinstance(right, list):
		return sorted(map(str, left)) == sorted(map(str, right))
	return left == right


def _local_values(local: Union[Plan, Mapping[str, Any]]) -> Mapping[str, Any]:
	if isinstance(local, Plan):
		return {name: getattr(local, name) for name in Plan.model_fields}
	return local


def build_section_diff(
	section: Union[PlanSection, str],
	baseline: Plan,
	local: Union[Plan, Mapping[str, Any]],
) -> SectionDiff:
	"""
	Build the partial payload for one section.

	Args:
		section: Section being saved
		baseline: Last server-confirmed plan
		local: Edited plan, or a mapping holding (at least) the section's fields.
			Fields of other sections are ignored; missing fields count as unchanged.

	Returns:
		SectionDiff whose ``changes`` holds JSON-shaped values of changed fields only
	"""
	section = parse_section(section)
	values = _local_values(local)

	changes: dict[str, Any] = {}
	for name in SECTION_FIELDS[section]:
		if name not in values:
			continue
		if not values_equal(name, getattr(baseline, name), values[name]):
			changes[name] = to_plain(values[name])

	return SectionDiff(sections=(section,), changes=changes)


def merge_diffs(diffs: Iterable[SectionDiff]) -> SectionDiff:
	sections: list[PlanSection] = []
	changes: dict[str, Any] = {}
	for diff in diffs:
		sections.extend(diff.sections)
		changes.update(diff.changes)
	return SectionDiff(sections=tuple(sections), changes=changes)


def build_plan_diff(
	baseline: Plan,
	local: Union[Plan, Mapping[str, Any]],
	sections: Optional[Iterable[PlanSection]] = None,
) -> SectionDiff:
	"""Merge the diffs of every section (or the given ones) for a full-plan commit."""
	selected = list(sections) if sections is not None else list(PlanSection)
	return merge_diffs(build_section_diff(s, baseline, local) for s in selected)


def sections_in(local: Mapping[str, Any]) -> list[PlanSection]:
	"""Sections that have at least one field present in ``local``."""
	return [
		section for section, names in SECTION_FIELDS.items()
		if any(name in local for name in names)
	]

"""
Component version checks.

Versions are compared as four numeric parts (MAJOR.SUB.MINOR.PATCH). A plan
may only move a component forward: the final version must be strictly
greater than the current one.
"""

import re
from typing import Any, Iterable, Union

from ..plans.models import PlanComponent
from .classifier import SectionValidationError

VERSION_PARTS = 4

VERSION_PATTERN = re.compile(
	r"^\d+(?:\.\d+){0,3}"
	r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
	r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)

_LEADING_DIGITS = re.compile(r"^\s*[+-]?(\d+)")


def _part_value(part: str) -> int:
	match = _LEADING_DIGITS.match(part)
	return int(match.group(1)) if match else 0


def normalize_version(version: str) -> tuple[int, int, int, int]:
	"""
	Normalize a version string to four integers.

	"1" -> (1, 0, 0, 0), "1.2" -> (1, 2, 0, 0), "2.0.beta" -> (2, 0, 0, 0).
	Parts beyond the fourth are ignored.
	"""
	if not version or not version.strip():
		return (0, 0, 0, 0)
	parts = [_part_value(p) for p in version.strip().split(".")]
	parts += [0] * (VERSION_PARTS - len(parts))
	return tuple(parts[:VERSION_PARTS])


def compare_versions(a: str, b: str) -> int:
	"""Return -1, 0 or 1 as ``a`` is lower, equal or higher than ``b``."""
	left = normalize_version(a)
	right = normalize_version(b)
	if left < right:
		return -1
	if left > right:
		return 1
	return 0


def is_valid_version(version: str) -> bool:
	return bool(version and VERSION_PATTERN.match(version.strip()))


def check_version_increase(field: str, final_version: str, current_version: str) -> None:
	"""
	Raise SectionValidationError unless ``final_version`` moves past ``current_version``.

	An empty current version has nothing to compare against and passes.
	"""
	if not final_version or not final_version.strip():
		raise SectionValidationError(field, "final version is required")
	if not is_valid_version(final_version):
		raise SectionValidationError(
			field, f"invalid version '{final_version}', use numeric versions such as 1.0.0"
		)
	if current_version and current_version.strip():
		if compare_versions(final_version, current_version) <= 0:
			raise SectionValidationError(
				field,
				f"'{final_version}' must be greater than the current version ({current_version})",
			)


def validate_component_versions(
	components: Iterable[Union[PlanComponent, dict[str, Any]]],
) -> list[PlanComponent]:
	"""
	Validate every component assignment of a plan before it is written.

	Args:
		components: Plan component assignments (models or plain dicts)

	Returns:
		The assignments as PlanComponent models

	Raises:
		SectionValidationError: Naming the first offending ``components[i]`` field
	"""
	validated: list[PlanComponent] = []
	seen: set[str] = set()

	for index, raw in enumerate(components):
		prefix = f"components[{index}]"
		if isinstance(raw, PlanComponent):
			component = raw
		else:
			data = dict(raw or {})
			if not str(data.get("component_id") or "").strip():
				raise SectionValidationError(f"{prefix}.component_id", "component id is required")
			if data.get("final_version") is None:
				raise SectionValidationError(f"{prefix}.final_version", "final version is required")
			component = PlanComponent(
				component_id=str(data["component_id"]),
				current_version=str(data.get("current_version") or ""),
				final_version=str(data["final_version"]),
			)

		if not component.component_id.strip():
			raise SectionValidationError(f"{prefix}.component_id", "component id is required")
		if component.component_id in seen:
			raise SectionValidationError(
				f"{prefix}.component_id", f"component {component.component_id} is listed twice"
			)
		seen.add(component.component_id)

		check_version_increase(
			f"{prefix}.final_version", component.final_version, component.current_version
		)
		validated.append(component)

	return validated

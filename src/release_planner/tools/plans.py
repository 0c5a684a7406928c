"""Release plan tools: read plans and save them section by section."""

import json

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..errors import StoreError
from ..plans.models import PlanStatus
from ..saving.classifier import SaveError, classify_error
from ..saving.orchestrator import PlanBaseline
from ..saving.sections import PlanSection
from ..saving.stamps import parse_stamp
from ..services import build_orchestrator, get_stores


def _error(message: str, **extra) -> str:
	return json.dumps({"success": False, "error": message, **extra}, indent=2)


def _parse_payload(data: str):
	try:
		payload = json.loads(data)
	except json.JSONDecodeError as e:
		return None, _error(f"Invalid JSON: {e}")
	if not isinstance(payload, dict):
		return None, _error("Payload must be a JSON object of plan fields")
	return payload, None


def _save_failure(error: SaveError) -> str:
	return _error(
		str(error),
		category=error.category.value,
		retryable=error.context.retryable,
		attempts=error.attempts,
	)


def register_plans_tools(mcp: FastMCP, config: Config) -> None:
	"""Register release plan tools."""

	async def _baseline(plan_id: str, expected_updated_at: str):
		stores = await get_stores(config)
		plan = await stores.plans.get(plan_id)
		if expected_updated_at:
			plan = plan.model_copy(update={"updated_at": parse_stamp(expected_updated_at)})
		return stores, PlanBaseline(plan)

	@mcp.tool()
	async def list_release_plans(status: str = "", product_id: str = "") -> str:
		"""
		List release plans, most recently updated first.

		Args:
			status: Optional status filter (planned, in_progress, done, paused)
			product_id: Optional product filter
		"""
		plan_status = None
		if status:
			try:
				plan_status = PlanStatus(status)
			except ValueError:
				return _error(
					f"Invalid status: {status}",
					valid_statuses=[s.value for s in PlanStatus],
				)

		stores = await get_stores(config)
		plans = await stores.plans.list_plans(status=plan_status, product_id=product_id or None)

		return json.dumps({
			"plans": [
				{
					"id": p.id,
					"name": p.name,
					"owner": p.owner,
					"status": p.status.value,
					"start_date": p.start_date.isoformat(),
					"end_date": p.end_date.isoformat(),
					"features": len(p.feature_ids),
					"components": len(p.components),
					"updated_at": p.updated_at.isoformat(),
				}
				for p in plans
			],
			"count": len(plans),
		}, indent=2)

	@mcp.tool()
	async def get_release_plan(plan_id: str) -> str:
		"""
		Get a release plan by ID.

		The returned ``updated_at`` is the version stamp to pass back as
		``expected_updated_at`` when saving.

		Args:
			plan_id: The plan ID
		"""
		stores = await get_stores(config)
		try:
			plan = await stores.plans.get(plan_id)
		except StoreError as e:
			return _error(classify_error(e).user_message, code=e.code)

		return json.dumps({"plan": plan.model_dump(mode="json")}, indent=2)

	@mcp.tool()
	async def save_plan_section(
		plan_id: str,
		section: str,
		data: str,
		expected_updated_at: str = "",
	) -> str:
		"""
		Save one section of a release plan.

		Only the section's fields are considered; anything else in ``data`` is
		ignored. Feature statuses and product component versions are updated
		after the plan write commits.

		Args:
			plan_id: Plan ID
			section: general, features, components, calendars or references
			data: JSON object with the section's fields
			expected_updated_at: The plan's updated_at as last read (optional)
		"""
		if section not in {s.value for s in PlanSection}:
			return _error(
				f"Unknown section: {section}",
				valid_sections=[s.value for s in PlanSection],
			)

		payload, failure = _parse_payload(data)
		if failure:
			return failure

		try:
			stores, baseline = await _baseline(plan_id, expected_updated_at)
		except StoreError as e:
			return _error(classify_error(e).user_message, code=e.code)
		except ValueError as e:
			return _error(f"Invalid expected_updated_at: {e}")

		try:
			report = await build_orchestrator(stores, config).save_section(baseline, section, payload)
		except SaveError as e:
			return _save_failure(e)

		return json.dumps({"success": True, **report.to_dict()}, indent=2)

	@mcp.tool()
	async def save_plan(plan_id: str, data: str, expected_updated_at: str = "") -> str:
		"""
		Save edits across several sections of a release plan in one write.

		Args:
			plan_id: Plan ID
			data: JSON object with any plan fields
			expected_updated_at: The plan's updated_at as last read (optional)
		"""
		payload, failure = _parse_payload(data)
		if failure:
			return failure

		try:
			stores, baseline = await _baseline(plan_id, expected_updated_at)
		except StoreError as e:
			return _error(classify_error(e).user_message, code=e.code)
		except ValueError as e:
			return _error(f"Invalid expected_updated_at: {e}")

		try:
			report = await build_orchestrator(stores, config).save_all(baseline, payload)
		except SaveError as e:
			return _save_failure(e)

		return json.dumps({"success": True, **report.to_dict()}, indent=2)

"""
Plan Models - Pydantic schemas for release plans.

A release plan references features and product components by id; it owns
only their membership, never their lifecycle.
"""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils import new_id, utc_now


class PlanStatus(str, Enum):
	"""Status of a release plan."""
	PLANNED = "planned"
	IN_PROGRESS = "in_progress"
	DONE = "done"
	PAUSED = "paused"


class ReferenceType(str, Enum):
	"""Kinds of annotations attached to a plan."""
	LINK = "link"
	DOCUMENT = "document"
	NOTE = "note"
	MILESTONE = "milestone"


class PlanPhase(BaseModel):
	"""A dated phase of the release timeline."""
	id: str = Field(default_factory=new_id)
	name: str = Field(description="Phase name (e.g., 'QA')")
	start_date: Optional[dt.date] = Field(default=None)
	end_date: Optional[dt.date] = Field(default=None)
	color: Optional[str] = Field(default=None, description="Hex colour used on the timeline")

	@model_validator(mode="after")
	def _check_range(self) -> "PlanPhase":
		if self.start_date and self.end_date and self.start_date > self.end_date:
			raise ValueError(f"Phase '{self.name}' starts after it ends")
		return self


class PlanComponent(BaseModel):
	"""A component assignment: which version the plan will ship."""
	component_id: str = Field(description="Product component record id")
	current_version: str = Field(default="", description="Version recorded when assigned")
	final_version: str = Field(description="Version the plan delivers")


class PlanMilestone(BaseModel):
	"""A named date on the plan timeline."""
	id: str = Field(default_factory=new_id)
	name: str
	date: dt.date
	phase_id: Optional[str] = Field(default=None)
	description: Optional[str] = Field(default=None)


class PlanReference(BaseModel):
	"""A link, document, note or milestone marker attached to the plan."""
	id: str = Field(default_factory=new_id)
	type: ReferenceType
	title: str
	url: Optional[str] = Field(default=None)
	description: Optional[str] = Field(default=None)
	date: Optional[dt.date] = Field(default=None)
	phase_id: Optional[str] = Field(default=None)
	milestone_color: Optional[str] = Field(default=None)


class Plan(BaseModel):
	"""
	A release plan.

	``updated_at`` is the version stamp used for optimistic locking; every
	successful write replaces it.
	"""
	id: str = Field(default_factory=new_id)
	name: str = Field(description="Unique plan name")
	owner: str = Field(description="Person responsible for the release")
	status: PlanStatus = Field(default=PlanStatus.PLANNED)
	start_date: dt.date
	end_date: dt.date
	description: str = Field(default="")
	product_id: Optional[str] = Field(default=None)
	it_owner: Optional[str] = Field(default=None)

	phases: list[PlanPhase] = Field(default_factory=list)
	feature_ids: list[str] = Field(default_factory=list)
	components: list[PlanComponent] = Field(default_factory=list)
	calendar_ids: list[str] = Field(default_factory=list)
	milestones: list[PlanMilestone] = Field(default_factory=list)
	references: list[PlanReference] = Field(default_factory=list)

	created_at: dt.datetime = Field(default_factory=utc_now)
	updated_at: dt.datetime = Field(default_factory=utc_now)

	@field_validator("name", "owner")
	@classmethod
	def _not_blank(cls, value: str) -> str:
		if not value or not value.strip():
			raise ValueError("must not be blank")
		return value

	@model_validator(mode="after")
	def _check_period(self) -> "Plan":
		if self.start_date > self.end_date:
			raise ValueError("start_date must be before or equal to end_date")
		return self

	def is_active(self) -> bool:
		"""Active plans hold their features; done plans release them."""
		return self.status != PlanStatus.DONE

	def get_component(self, component_id: str) -> Optional[PlanComponent]:
		for component in self.components:
			if component.component_id == component_id:
				return component
		return None

	def duration_days(self) -> int:
		return (self.end_date - self.start_date).days

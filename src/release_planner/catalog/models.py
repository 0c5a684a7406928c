"""Catalog models - features and product component version records."""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..utils import new_id, utc_now


class FeatureStatus(str, Enum):
	"""Feature lifecycle: assigned while in a plan, completed once released from it."""
	PLANNED = "planned"
	ASSIGNED = "assigned"
	COMPLETED = "completed"


class Feature(BaseModel):
	"""A feature owned by a product and scheduled through release plans."""
	id: str = Field(default_factory=new_id)
	name: str
	description: str = Field(default="")
	product_id: Optional[str] = Field(default=None)
	status: FeatureStatus = Field(default=FeatureStatus.PLANNED)
	created_at: dt.datetime = Field(default_factory=utc_now)
	updated_at: dt.datetime = Field(default_factory=utc_now)


class ComponentVersion(BaseModel):
	"""
	Version record for one component of a product.

	Only one prior step is tracked: committing a new version moves
	``current_version`` into ``previous_version``.
	"""
	id: str = Field(default_factory=new_id)
	type: str = Field(description="Component type code (e.g., 'web', 'services')")
	current_version: str
	previous_version: str = Field(default="")

	def advanced_to(self, version: str) -> "ComponentVersion":
		"""Return a copy that moves this component forward to ``version``."""
		return self.model_copy(update={
			"current_version": version,
			"previous_version": self.current_version,
		})


class Product(BaseModel):
	"""A product and the component version records it owns."""
	id: str = Field(default_factory=new_id)
	name: str
	components: list[ComponentVersion] = Field(default_factory=list)
	created_at: dt.datetime = Field(default_factory=utc_now)
	updated_at: dt.datetime = Field(default_factory=utc_now)

	def get_component(self, component_id: str) -> Optional[ComponentVersion]:
		for component in self.components:
			if component.id == component_id:
				return component
		return None

"""Plans module - Release plan models and storage."""

from .models import (
	Plan,
	PlanComponent,
	PlanMilestone,
	PlanPhase,
	PlanReference,
	PlanStatus,
	ReferenceType,
)
from .store import OptimisticLockError, PlanNotFoundError, PlanStore, PlanValidationError

__all__ = [
	"Plan",
	"PlanComponent",
	"PlanMilestone",
	"PlanPhase",
	"PlanReference",
	"PlanStatus",
	"ReferenceType",
	"PlanStore",
	"OptimisticLockError",
	"PlanNotFoundError",
	"PlanValidationError",
]

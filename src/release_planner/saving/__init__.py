"""Saving module - optimistic-concurrency save orchestration for release plans."""

from .stamps import STAMP_TOLERANCE_MS, StampFreshness, compare_stamps, ensure_fresh
from .classifier import ErrorCategory, ErrorContext, SaveError, SectionValidationError, classify_error
from .retry import RetryDecision, RetryPolicy, run_with_retry
from .sections import PlanSection, SectionDiff, build_plan_diff, build_section_diff
from .versions import compare_versions, normalize_version, validate_component_versions
from .batch import BatchStatus, DependentUpdateResult, DependentWriteExecutor
from .signals import EntityKind, InvalidationBus
from .orchestrator import PlanBaseline, SaveOrchestrator, SaveReport, validate_section

__all__ = [
	"STAMP_TOLERANCE_MS",
	"StampFreshness",
	"compare_stamps",
	"ensure_fresh",
	"ErrorCategory",
	"ErrorContext",
	"SaveError",
	"SectionValidationError",
	"classify_error",
	"RetryDecision",
	"RetryPolicy",
	"run_with_retry",
	"PlanSection",
	"SectionDiff",
	"build_plan_diff",
	"build_section_diff",
	"compare_versions",
	"normalize_version",
	"validate_component_versions",
	"BatchStatus",
	"DependentUpdateResult",
	"DependentWriteExecutor",
	"EntityKind",
	"InvalidationBus",
	"PlanBaseline",
	"SaveOrchestrator",
	"SaveReport",
	"validate_section",
]

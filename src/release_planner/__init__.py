"""release-planner: section-wise release plan saves with optimistic locking."""

__version__ = "0.3.0"

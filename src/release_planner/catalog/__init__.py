"""Catalog module - Features and product component versions."""

from .models import ComponentVersion, Feature, FeatureStatus, Product
from .store import FeatureStore, ProductStore

__all__ = [
	"Feature",
	"FeatureStatus",
	"ComponentVersion",
	"Product",
	"FeatureStore",
	"ProductStore",
]

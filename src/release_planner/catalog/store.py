"""
Catalog stores - SQLite-backed feature and product storage.

FeatureStore exposes status transitions; ProductStore exposes component
version updates with an explicit partial-update flag. Both use optimistic
locking on ``updated_at`` when the caller supplies an expected stamp.
"""

import logging
from typing import Any, Optional, Union

from pydantic import ValidationError

from ..database import SqliteStore
from ..errors import ConflictError, NotFoundError, StoreValidationError
from ..saving.stamps import STAMP_TOLERANCE_MS, Stamp, ensure_fresh
from ..saving.versions import compare_versions
from ..utils import utc_now
from .models import ComponentVersion, Feature, FeatureStatus, Product

logger = logging.getLogger(__name__)


class FeatureStore(SqliteStore):
	"""SQLite-backed feature storage."""

	SCHEMA = """
		CREATE TABLE IF NOT EXISTS features (
			id TEXT PRIMARY KEY,
			product_id TEXT,
			status TEXT NOT NULL,
			data TEXT NOT NULL,
			updated_at TEXT NOT NULL
		);
		CREATE INDEX IF NOT EXISTS idx_features_product ON features(product_id);
	"""

	def __init__(self, db_path: str, tolerance_ms: int = STAMP_TOLERANCE_MS):
		super().__init__(db_path)
		self.tolerance_ms = tolerance_ms

	async def _save(self, feature: Feature) -> None:
		db = await self.connection()
		await db.execute(
			"""
			INSERT OR REPLACE INTO features (id, product_id, status, data, updated_at)
			VALUES (?, ?, ?, ?, ?)
			""",
			(
				feature.id,
				feature.product_id,
				feature.status.value,
				feature.model_dump_json(),
				feature.updated_at.isoformat(),
			),
		)
		await db.commit()

	async def create_feature(self, feature: Feature) -> Feature:
		"""Store a new feature."""
		now = utc_now()
		feature = feature.model_copy(update={"created_at": now, "updated_at": now})
		await self._save(feature)
		logger.info(f"Created feature {feature.id} ({feature.name})")
		return feature

	async def get(self, feature_id: str) -> Feature:
		"""Get a feature by ID. Raises NotFoundError if absent."""
		db = await self.connection()
		async with db.execute("SELECT data FROM features WHERE id = ?", (feature_id,)) as cursor:
			row = await cursor.fetchone()
		if not row:
			raise NotFoundError("Feature", feature_id)
		return Feature.model_validate_json(row["data"])

	async def update_status(
		self,
		feature_id: str,
		new_status: Union[FeatureStatus, str],
		expected_timestamp: Optional[Stamp] = None,
	) -> Feature:
		"""
		Move a feature to a new status.

		Raises:
			NotFoundError: If the feature does not exist
			ConflictError: If ``expected_timestamp`` is stale
			StoreValidationError: If the status is not a known value
		"""
		try:
			status = FeatureStatus(new_status)
		except ValueError as e:
			raise StoreValidationError(f"Invalid feature status: {new_status}") from e

		async with self._write_lock:
			feature = await self.get(feature_id)
			ensure_fresh("Feature", feature_id, expected_timestamp, feature.updated_at, self.tolerance_ms)

			updated = feature.model_copy(update={"status": status, "updated_at": utc_now()})
			await self._save(updated)
		logger.info(f"Feature {feature_id}: {feature.status.value} -> {status.value}")
		return updated

	async def list_features(self, product_id: Optional[str] = None) -> list[Feature]:
		"""List features, optionally for one product."""
		db = await self.connection()
		if product_id:
			query = "SELECT data FROM features WHERE product_id = ? ORDER BY id"
			params: tuple = (product_id,)
		else:
			query = "SELECT data FROM features ORDER BY id"
			params = ()

		async with db.execute(query, params) as cursor:
			rows = await cursor.fetchall()
		return [Feature.model_validate_json(row["data"]) for row in rows]


def _check_advance(product: Product, incoming: list[ComponentVersion]) -> None:
	for component in incoming:
		stored = product.get_component(component.id)
		if stored is None:
			raise NotFoundError("Component", component.id)
		if component.previous_version != stored.current_version:
			raise ConflictError(
				f"Component {component.id} is now at {stored.current_version}, "
				f"not {component.previous_version}"
			)
		if compare_versions(component.current_version, stored.current_version) <= 0:
			raise StoreValidationError(
				f"Component {component.id} version {component.current_version} "
				f"must be greater than {stored.current_version}"
			)


class ProductStore(SqliteStore):
	"""
	SQLite-backed product storage.

	Component updates are read-modify-write on the product row; an asyncio
	lock serialises them so concurrent partial updates cannot drop each
	other's changes.
	"""

	SCHEMA = """
		CREATE TABLE IF NOT EXISTS products (
			id TEXT PRIMARY KEY,
			data TEXT NOT NULL,
			updated_at TEXT NOT NULL
		);
	"""

	def __init__(self, db_path: str, tolerance_ms: int = STAMP_TOLERANCE_MS):
		super().__init__(db_path)
		self.tolerance_ms = tolerance_ms

	async def _save(self, product: Product) -> None:
		db = await self.connection()
		await db.execute(
			"INSERT OR REPLACE INTO products (id, data, updated_at) VALUES (?, ?, ?)",
			(product.id, product.model_dump_json(), product.updated_at.isoformat()),
		)
		await db.commit()

	async def create_product(self, product: Product) -> Product:
		"""Store a new product with its components."""
		now = utc_now()
		product = product.model_copy(update={"created_at": now, "updated_at": now})
		await self._save(product)
		logger.info(f"Created product {product.id} ({product.name}, {len(product.components)} components)")
		return product

	async def get(self, product_id: str) -> Product:
		"""Get a product by ID. Raises NotFoundError if absent."""
		db = await self.connection()
		async with db.execute("SELECT data FROM products WHERE id = ?", (product_id,)) as cursor:
			row = await cursor.fetchone()
		if not row:
			raise NotFoundError("Product", product_id)
		return Product.model_validate_json(row["data"])

	async def update_components(
		self,
		product_id: str,
		components: list[Union[ComponentVersion, dict[str, Any]]],
		partial_update: bool = False,
		expected_timestamp: Optional[Stamp] = None,
		advance_only: bool = False,
	) -> Product:
		"""
		Update a product's component version records.

		Args:
			product_id: Product owning the components
			components: Component records to write
			partial_update: True upserts only the given components and keeps
				all others; False replaces the whole list
			expected_timestamp: The caller's last-known product ``updated_at``
			advance_only: Each record must move its component forward from the
				stored version: ``previous_version`` equal to the stored
				``current_version`` and ``current_version`` greater than it.
				Checked under the write lock.

		Returns:
			The persisted product

		Raises:
			NotFoundError: If the product does not exist
			ConflictError: If ``expected_timestamp`` is stale, or with ``advance_only``
				when a component moved since the caller read it
			StoreValidationError: If a component record is malformed, or with
				``advance_only`` when a version does not increase
		"""
		try:
			incoming = [ComponentVersion.model_validate(c) for c in components]
		except ValidationError as e:
			raise StoreValidationError(f"Invalid component record: {e.errors()[0].get('msg')}") from e

		for component in incoming:
			if not component.current_version.strip():
				raise StoreValidationError(f"Component {component.id} has an empty current_version")

		async with self._write_lock:
			product = await self.get(product_id)
			ensure_fresh("Product", product_id, expected_timestamp, product.updated_at, self.tolerance_ms)
			if advance_only:
				_check_advance(product, incoming)

			if partial_update:
				by_id = {c.id: c for c in product.components}
				for component in incoming:
					by_id[component.id] = component
				merged = list(by_id.values())
			else:
				merged = incoming

			updated = product.model_copy(update={"components": merged, "updated_at": utc_now()})
			await self._save(updated)

		mode = "partial" if partial_update else "full"
		logger.info(f"Updated product {product_id} components ({mode}, {len(incoming)} records)")
		return updated

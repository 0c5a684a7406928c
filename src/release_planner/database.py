"""SQLite plumbing shared by the plan, feature and product stores."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiosqlite

logger = logging.getLogger(__name__)


class SqliteStore:
	"""
	Base for aiosqlite-backed stores.

	Subclasses set ``SCHEMA`` (one or more statements) and call
	``await self.connection()`` before each query; the connection is opened
	and the schema created lazily on first use. Read-modify-write sequences
	hold ``self._write_lock`` from the read through the commit.
	"""

	SCHEMA = ""

	def __init__(self, db_path: str):
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._db: Optional[aiosqlite.Connection] = None
		self._init_lock = asyncio.Lock()
		self._write_lock = asyncio.Lock()

	async def init(self):
		"""Open the connection and create tables. A second call is a no-op."""
		async with self._init_lock:
			if self._db:
				return
			db = await aiosqlite.connect(str(self.db_path))
			db.row_factory = aiosqlite.Row
			await db.executescript(self.SCHEMA)
			await db.commit()
			self._db = db
		logger.info(f"{type(self).__name__} initialized: {self.db_path}")

	async def connection(self) -> aiosqlite.Connection:
		if not self._db:
			await self.init()
		return self._db

	async def close(self):
		"""Close the database connection."""
		if self._db:
			await self._db.close()
			self._db = None

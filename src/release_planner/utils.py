"""Small helpers shared by the models and stores."""

import datetime as dt
import uuid


def utc_now() -> dt.datetime:
	"""Timezone-aware now, used for every version stamp."""
	return dt.datetime.now(dt.timezone.utc)


def new_id() -> str:
	"""Short random identifier for new entities."""
	return str(uuid.uuid4())[:12]

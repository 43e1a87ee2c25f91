"""SQLAlchemy models for PitchForge.

All models are imported here so that ``Base.metadata`` knows every table
(used by ``create_all`` in tests and by migration autogenerate). If you add a
new model, import it in this file.
"""

from app.models.bulk_job import BulkJob
from app.models.cache_entry import CacheEntry
from app.models.market_report import MarketReport
from app.models.narrative import FormattedAsset, Narrative
from app.models.pitch import Pitch
from app.models.subscription import Subscription
from app.models.usage import UsageRecord
from app.models.user import User

__all__ = [
    "BulkJob",
    "CacheEntry",
    "FormattedAsset",
    "MarketReport",
    "Narrative",
    "Pitch",
    "Subscription",
    "UsageRecord",
    "User",
]

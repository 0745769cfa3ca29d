"""
sync - Pull/push reconciliation against the remote row store.
"""

from shop_sync.sync.mapping import (
    Projection,
    TableSyncSpec,
    BackfillSource,
    BackfillSpec,
    SyncRegistry,
)
from shop_sync.sync.tables import default_registry
from shop_sync.sync.watermark import watermark_key, get_watermark, set_watermark, all_watermarks
from shop_sync.sync.coordinator import (
    SyncCoordinator,
    TableSyncResult,
    SyncReport,
    BackfillReport,
)

__all__ = [
    "Projection",
    "TableSyncSpec",
    "BackfillSource",
    "BackfillSpec",
    "SyncRegistry",
    "default_registry",
    "watermark_key",
    "get_watermark",
    "set_watermark",
    "all_watermarks",
    "SyncCoordinator",
    "TableSyncResult",
    "SyncReport",
    "BackfillReport",
]

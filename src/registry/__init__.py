"""Registry catalog package.

- models.py: RegistryItem feed records
- catalog.py: in-memory catalog with change notifications
- feed.py: loading the feed from a URL or file (JSON, YAML, zip)
- versions.py: installed-vs-available version comparison
"""

from .catalog import RegistryCatalogStore  # noqa: F401
from .feed import FeedError, load_feed  # noqa: F401
from .models import InvalidRegistryRecord, RegistryItem  # noqa: F401

__all__ = [
    "RegistryCatalogStore",
    "FeedError",
    "load_feed",
    "InvalidRegistryRecord",
    "RegistryItem",
]

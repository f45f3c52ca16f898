"""SecureStore: an encrypted settings table and upload progress tracking."""

from .core.exceptions import SecureStoreError, StoreInitializationError, StorageError, KeyStoreError
from .core.models import PrefValue, ValueType
from .store import SecureStore
from .context import AppContext, PlatformContext, build_context, build_platform_context
from .network.progress import ProgressTrackingBody

__all__ = [
    "SecureStoreError",
    "StoreInitializationError",
    "StorageError",
    "KeyStoreError",
    "PrefValue",
    "ValueType",
    "SecureStore",
    "AppContext",
    "PlatformContext",
    "build_context",
    "build_platform_context",
    "ProgressTrackingBody",
]

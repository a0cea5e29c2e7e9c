from .base import BaseProvider, ProviderResult
from .registry import ProviderRecord, ProviderRegistry

__all__ = [
    "BaseProvider",
    "ProviderResult",
    "ProviderRecord",
    "ProviderRegistry",
]

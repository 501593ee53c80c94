from .base import BaseCollector, CollectorResult
from .users import UserCollector
from .skus import SkuCollector
from .managers import ManagerCollector

__all__ = [
    "BaseCollector",
    "CollectorResult",
    "UserCollector",
    "SkuCollector",
    "ManagerCollector",
]

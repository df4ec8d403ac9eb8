"""
Repositories: stores with identity-indexed CRUD and entity validation.
"""

from .repository import MangoRepository
from .repository_async import MangoRepositoryAsync

__all__ = [
    "MangoRepository",
    "MangoRepositoryAsync",
]

"""
Repository layer for database operations
Repositories handle all database interactions using Supabase
"""

from app.repositories.base import BaseRepository
from app.repositories.product_repository import ProductRepository
from app.repositories.profile_repository import ProfileRepository

__all__ = [
    "BaseRepository",
    "ProductRepository",
    "ProfileRepository",
]

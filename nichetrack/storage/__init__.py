"""
Storage module.

Persistence backends: Supabase and an in-memory mock.
"""

from nichetrack.storage.base import Storage
from nichetrack.storage.supabase_store import (
    SupabaseStorage,
    MockSupabaseStorage,
    create_supabase_client,
)

__all__ = [
    "Storage",
    "SupabaseStorage",
    "MockSupabaseStorage",
    "create_supabase_client",
]

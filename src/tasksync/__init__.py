"""Offline-tolerant task sync (local cache, offline mutation queue, Supabase backend)."""

__version__ = "0.1.0"

"""Care Sync Service - per-user task and diary synchronisation.

Keeps the tasks and diary entries of a care-companion app consistent
between the on-device store and the remote tables.

Features:
- Last-writer-wins merge keyed by record id and updated_at
- Offline-first: remote failures never reach the caller
- Debounced, coalesced pushes of local edits
- Tombstones so deletions reach other devices
- Per-user scoped local storage with one-time legacy migration

Components:
- config: Application settings
- database: SQLAlchemy table backing the local record store
- schemas: Pydantic record and API schemas
- record_store: Scoped local persistence
- remote_client: Supabase REST client
- record_kinds: Storage/table/row mapping per record kind
- reconciliation: Merge function and ReconciliationEngine
- app_state: In-memory session collections
- api_server: FastAPI REST API

Usage:
    python api_server.py
"""

__version__ = "1.0.0"
__description__ = "Per-user task and diary sync with last-writer-wins reconciliation"

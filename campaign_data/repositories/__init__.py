"""
Repository layer for data access.

`Repository` provides tenant-scoped CRUD and pagination for any registered
entity type. It reads the active tenant from a TenantContextProvider on every
call and delegates execution to a StorageBackend (see campaign_data.db.backend).
"""

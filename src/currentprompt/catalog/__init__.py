"""Catalog module: primary-store models, schemas, and repository.

Modules are markdown content documents with catalog metadata, stored in
PostgreSQL as the system of record.
"""

"""
Database package for Modwarden.

Public API:
    - db_connection: Shared ConnectionManager (single aiosqlite connection)
    - SchemaManager: Creates tables and indexes
    - Database: Opens the connection and schema at startup, closes at shutdown
"""

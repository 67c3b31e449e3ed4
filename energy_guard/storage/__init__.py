"""
Storage layer for Energy Guard.

SQLite-backed record store for usage records and alerts.
"""

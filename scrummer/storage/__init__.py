"""Persisted records: backends, snapshot history and sprint setup."""

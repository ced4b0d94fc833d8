"""Settings, logging and risk presentation helpers."""

"""Store settings and API keys."""

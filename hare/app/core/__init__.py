"""Service-wide core helpers (service identity, backoff, logging)."""

SERVICE_NAME = "hare"

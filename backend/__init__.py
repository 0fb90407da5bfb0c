"""Backend package exposing the FastAPI reconciliation service."""

"""API package - FastAPI application."""

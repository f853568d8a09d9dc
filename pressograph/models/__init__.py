"""Data models: API schemas and domain events."""

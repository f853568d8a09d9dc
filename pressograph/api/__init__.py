"""Pressograph HTTP surface — FastAPI app and preference routes."""

from pressograph.api.app import create_app

__all__ = ["create_app"]

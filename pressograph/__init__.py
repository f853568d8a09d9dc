"""Pressograph — three-tier user preference synchronization."""

__version__ = "0.1.0"

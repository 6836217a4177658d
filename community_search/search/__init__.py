"""Hybrid semantic and keyword retrieval."""

"""Tutor API rate limiting service."""

"""Verification engine services."""

"""Concrete storage and capture collaborators."""

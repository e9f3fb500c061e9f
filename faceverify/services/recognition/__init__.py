"""Face capability implementations."""

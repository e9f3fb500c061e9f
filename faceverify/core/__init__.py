"""Core configuration, logging, errors and utilities."""

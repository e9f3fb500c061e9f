"""Domain entities, value objects and interfaces."""

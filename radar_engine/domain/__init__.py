"""Domain entities and interfaces."""

"""Domain layer: entities, exceptions and services."""

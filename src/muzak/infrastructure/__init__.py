"""Infrastructure layer: persistence, integrations, observability, lifecycle."""

"""External integrations: Drive shares, mirror instance, shared HTTP pool."""

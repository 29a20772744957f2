"""Pure domain entities and value objects."""

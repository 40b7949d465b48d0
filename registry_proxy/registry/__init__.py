"""Registry API routing."""

"""Infrastructure adapters: database, cache and migrations."""

"""Gateway services: shared state, lookups and their lifecycle."""

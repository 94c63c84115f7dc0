"""Core services: database, auth, speech provider, storage and records."""

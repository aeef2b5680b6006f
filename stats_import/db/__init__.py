"""Storage adapters: repository interfaces, in-memory and PostgreSQL."""

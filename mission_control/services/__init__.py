"""Request-scoped services that connect the engine to storage."""

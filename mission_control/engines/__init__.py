"""Pure engines: no database, no HTTP."""

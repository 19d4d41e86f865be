"""Background jobs runnable as standalone scripts."""

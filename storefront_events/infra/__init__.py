"""Infrastructure adapters: logging and database sessions."""

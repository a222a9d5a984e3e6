"""SQLAlchemy-backed implementations of the executor ports."""

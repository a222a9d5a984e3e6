"""SQLAlchemy query assembly: filters, sorting, search and pagination."""

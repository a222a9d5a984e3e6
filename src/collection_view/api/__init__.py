"""HTTP adapter serving collection pages as JSON."""

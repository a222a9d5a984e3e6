"""Domain value objects, sort transitions and ports."""

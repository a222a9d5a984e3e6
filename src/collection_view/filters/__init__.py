"""Filter type handlers and the registry that maps tags to them."""

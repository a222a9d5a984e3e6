"""Error taxonomy for stable module boundaries."""


class CollectionViewError(Exception):
    """Base exception for collection-view."""


class ConfigurationError(CollectionViewError):
    """Raised when a field, filter type, or controller is configured inconsistently."""


class FilterError(CollectionViewError):
    """Raised when a filter value cannot be turned into a predicate."""


class UnknownFieldError(CollectionViewError):
    """Raised when a field path does not resolve to a mapped attribute."""


class QueryExecutionError(CollectionViewError):
    """Raised by executors when a query cannot be run."""


class BulkActionError(CollectionViewError):
    """Raised for invalid or failing bulk actions."""

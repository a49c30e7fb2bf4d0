"""Error taxonomy shared by the indexing and search layers."""


class EntitySearchError(Exception):
    """Base class for all entity search errors."""


class InputError(EntitySearchError, ValueError):
    """Raised for an empty query or a malformed entity/field filter, before any store access."""


class StoreError(EntitySearchError, RuntimeError):
    """Raised when the index store fails (connection loss, lock timeout, constraint violation)."""


class HookResolutionError(EntitySearchError):
    """Raised internally when a declared search hook cannot be resolved.

    Never escapes the registry: resolution failures are logged and the entity
    type is treated as having no hook.
    """


class ExtensionError(EntitySearchError):
    """Raised when an invoked pre/post-search hook fails or returns an invalid value."""

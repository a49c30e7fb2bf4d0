"""Entity search: index application entities' text fields and rank queries against them."""

__version__ = "0.1.0"

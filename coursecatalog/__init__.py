"""Course catalog snapshot fetcher and in-memory catalog view."""

__version__ = "0.3.0"

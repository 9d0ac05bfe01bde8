"""WSGI response caching middleware with memory, Redis and two-level stores."""

__version__ = "0.1.0"
"""Product catalog service with cache-aside response caching."""

__version__ = "0.1.0"

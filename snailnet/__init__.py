"""A TCP load balancer with a worker pool, and small socket servers and clients."""

__version__ = "1.0.0"

__all__ = ["__version__"]
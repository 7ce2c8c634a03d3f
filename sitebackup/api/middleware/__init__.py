"""API middleware components."""

from sitebackup.api.middleware.correlation import CorrelationMiddleware

__all__ = ["CorrelationMiddleware"]

"""Module services and the dashboard composition root."""

from dspr.services.dashboard import Dashboard

__all__ = ["Dashboard"]

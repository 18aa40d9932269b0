"""FastAPI service for the service request lifecycle engine.

This package provides REST API endpoints for creating service requests,
driving them through their status lifecycle and reading notification
inboxes.
"""

__version__ = "1.0.0"

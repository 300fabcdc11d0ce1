"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Schemas are grouped by domain module (catalog, procurement) and also include
common reusable models such as the error envelope and message responses.
"""

from .common import ErrorResponse, MessageResponse  # noqa: F401

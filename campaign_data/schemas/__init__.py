"""
Public Pydantic schemas used by repositories, services, routes, and tests.

Schemas are grouped by domain module (regions, demands, documents, ...) and
also include common reusable models such as pages and standard responses.
"""

from .common import MessageResponse, Page, QueryResult  # noqa: F401

"""
API route modules.

This package contains subrouters for:
- Regions: region map, statistics, color and coordinator edits
- Demands: demand listing and per-status summary

Routers are included by campaign_data.api.main.create_app (under the /api/v1 prefix).
"""

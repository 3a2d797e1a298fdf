"""
FastAPI surface over the data-access layer.

Build the application with campaign_data.api.main.create_app; routes live in
campaign_data.api.routes and dependencies in campaign_data.api.deps.
"""

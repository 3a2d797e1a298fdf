"""
Core utilities shared by every layer.

This package provides:
- Application-level settings (separate from DB settings)
- Logging configuration with correlation and tenant context
- Tenant context providers
- The error taxonomy raised by repositories and services
"""

"""
SportsTalent - talent discovery for athletes, coaches and SAI officials.

This package contains the complete application:
- core: Framework-agnostic business logic (accounts, media, gesture rules)
- infrastructure: Snowflake, object storage, FFmpeg and email integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"

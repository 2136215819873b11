"""
Environment-driven settings: JWT signing, password-reset codes, Snowflake,
R2 with its local-disk fallback, SES email and upload limits. Each
integration has a mock mode for local development and tests.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]

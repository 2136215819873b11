"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Database persistence
- storage: Object storage (R2 with local disk fallback)
- email: Transactional email (AWS SES)
- video: FFmpeg probing and thumbnails

These wrappers translate between external formats and our domain models.
"""

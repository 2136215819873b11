"""
Core business logic for the sports talent platform.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
or any infrastructure concerns. Accounts, media (videos and assessments)
and gesture practice can be tested in isolation.
"""

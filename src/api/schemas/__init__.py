"""Pydantic models for API responses.

- **errors**: The error body returned by every exception handler
"""

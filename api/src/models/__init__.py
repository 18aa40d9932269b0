"""Data models for the service request engine.

This package contains Pydantic models for persisted requests, API
request/response validation, and notification records.
"""

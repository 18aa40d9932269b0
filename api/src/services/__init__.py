"""Lifecycle services.

The kind registry and payload validation, the lifecycle engine, and the
side-effect services it drives: notifications, chat channels, fan-out
and status history.
"""

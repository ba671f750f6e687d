"""Periodic multi-service availability checks with per-service uptime history."""

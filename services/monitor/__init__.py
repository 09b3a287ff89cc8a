"""Headless polling monitor service."""

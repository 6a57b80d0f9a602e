"""Utility modules for the settings store."""

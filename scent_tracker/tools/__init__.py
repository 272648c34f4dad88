"""Standalone diagnostic tools."""

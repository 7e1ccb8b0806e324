"""Adapters for the staging store."""

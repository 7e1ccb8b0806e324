"""Ports for the staging store."""

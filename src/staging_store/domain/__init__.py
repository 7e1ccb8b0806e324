"""Staging store domain layer."""

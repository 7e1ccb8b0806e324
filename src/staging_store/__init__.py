"""Chunked piece staging store with a resumable streaming upload pipeline."""

__version__ = "0.1.0"

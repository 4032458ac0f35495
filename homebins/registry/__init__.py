"""Manifest stores and repositories."""

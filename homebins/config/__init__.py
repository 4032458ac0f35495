"""Manifest schemas and configuration loading."""

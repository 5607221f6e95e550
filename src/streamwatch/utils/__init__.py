"""Logging, error and configuration utilities."""

"""Ports and shared state types."""

"""Kernel services: entity management and authorization."""

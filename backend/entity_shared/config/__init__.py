"""Configuration: settings, structured logging and constants."""

"""Configuration loaded from the settings file and environment."""

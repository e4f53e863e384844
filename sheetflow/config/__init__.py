"""Configuration loading (YAML + JSON schema) and runtime settings."""

"""Configuration loading (.env, YAML, environment variables)."""

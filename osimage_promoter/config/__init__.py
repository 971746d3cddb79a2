"""Configuration for the promotion pipeline."""

"""Configuration for codestrata."""

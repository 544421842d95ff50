"""Data models for chain state and chain metadata."""

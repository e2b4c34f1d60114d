"""Core configuration and path management for fsguard."""

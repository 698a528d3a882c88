"""Command line client for the living condition monitor service."""

"""Shared protocols, adapters and helpers for pipeline stages."""

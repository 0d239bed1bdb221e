"""Aggregation, snapshot caching and status derivation."""

"""Retrieval-augmented generation core for market documents."""

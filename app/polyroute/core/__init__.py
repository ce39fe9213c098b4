"""Routing core: provider registry, attempt metrics, router and request queue."""

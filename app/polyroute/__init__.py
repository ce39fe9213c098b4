"""Polyroute: multi-provider LLM request routing."""

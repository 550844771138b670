"""Haggle marketplace backend: offer negotiation and payment reconciliation."""

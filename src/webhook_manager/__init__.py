"""Webhook management service: CRUD, on-demand probes and failure diagnostics."""

__version__ = "0.1.0"

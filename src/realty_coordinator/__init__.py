"""Realty Coordinator - keyword-routed agent coordination for real-estate workflows."""

__version__ = "0.1.0"

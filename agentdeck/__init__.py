"""agentdeck - terminal client for a remote agent task service."""

__version__ = "0.4.0"

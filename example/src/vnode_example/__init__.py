"""Runnable examples for the virtual node heartbeat supervisor."""

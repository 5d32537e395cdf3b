"""Realtime message and notification delivery."""

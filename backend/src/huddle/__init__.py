"""Huddle realtime messaging core."""

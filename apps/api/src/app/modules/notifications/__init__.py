"""Notifications module - fan-out and inbox."""

"""Applications module - application lifecycle."""

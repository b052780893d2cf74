"""Audit logs module - best-effort audit trail."""

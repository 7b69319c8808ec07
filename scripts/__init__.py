"""Operational scripts: audit trail and command line wrapper."""

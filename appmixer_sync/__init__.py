"""Reconcile declared Appmixer users and accounts against the live API."""

__version__ = "0.1.0"

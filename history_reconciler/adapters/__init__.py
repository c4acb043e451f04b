"""Adapters for History-Reconciler.

Concrete implementations of the domain ports: raw payload sources and
canonical history storage.
"""

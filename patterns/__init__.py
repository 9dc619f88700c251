"""Reusable patterns shared by the store domains.

Each module is a self-contained building block: rules engine, order
state machines, repository layer and store configuration.
"""

"""Inventory domain.

- Stock records per product / variant / warehouse
- Immutable movement ledger
- Low-stock alerts raised and resolved on every adjustment
"""

"""Upsell links and product bundles."""

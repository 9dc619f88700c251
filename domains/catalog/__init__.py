"""Catalog domain: categories, products, images and Stripe product sync."""

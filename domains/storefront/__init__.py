"""External storefront API.

API-key authenticated read models, checkout-session creation and the
Stripe webhook. Routes live under /api/external.
"""

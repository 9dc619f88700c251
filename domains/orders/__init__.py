"""Orders: dashboard administration, cash-on-delivery and Stripe-paid orders."""

"""Coupon domain: discount codes, validity windows and redemptions."""

"""Regional pricing: regions, per-region overrides and the currency catalogue."""

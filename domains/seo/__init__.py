"""Gemini-backed SEO generation."""

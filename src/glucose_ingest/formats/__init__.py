"""Vendor profiles and the canonical reading table schema."""

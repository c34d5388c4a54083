"""Local cart storage adapters."""

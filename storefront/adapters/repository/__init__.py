"""Order repository adapters."""

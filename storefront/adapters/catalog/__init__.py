"""Product catalog adapters."""

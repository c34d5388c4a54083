"""Customer location adapters."""

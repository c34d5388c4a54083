"""Test suite for the storefront order system.

Organized into three categories:

1. core/: Unit tests for core domain logic
   - Minimal dependencies, fast execution
   - Uses in-memory fakes for ports

2. adapters/: Integration tests for adapter implementations
   - Dolibarr adapters run against httpx.MockTransport
   - Validates adapter behavior and error handling

3. fakes/: Port implementations for testing
   - In-memory implementations of OrderRepositoryPort, CatalogPort, etc.
   - Used by core unit tests
"""

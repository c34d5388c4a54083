"""External adapters for the storefront order system.

This package contains all external dependencies (the Dolibarr REST API,
local files, the terminal) and provides implementations of the core port
interfaces.

Adapter Organization:

- repository/: Order repository adapters (Dolibarr REST API)
- catalog/: Product catalog adapters (Dolibarr REST API)
- cart/: Local cart storage adapters (JSON file)
- location/: Customer position adapters (configured coordinates)
- notification/: Customer-facing messages (stdout)
- cli/: Command-line interface and order commands
"""

"""Composition root for the storefront order system.

This module is the ONLY location that imports both core domain logic
and concrete adapter implementations. All wiring of dependencies
happens here, creating a clear entry point for the application.

Module Structure:
- Configuration loading via config module
- Adapter instantiation
- Core service initialization
- Dependency injection
- Interactive command loop
"""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from typing import Any

from storefront.adapters.cart.json_file import JsonFileCartStore
from storefront.adapters.catalog.dolibarr import DolibarrCatalogAdapter
from storefront.adapters.cli.commands import CLICommandHandler
from storefront.adapters.location.static import StaticLocationAdapter
from storefront.adapters.notification.stdout import StdoutNotifier
from storefront.adapters.repository.dolibarr import DolibarrOrderRepository
from storefront.config import Settings, load_settings
from storefront.core.order_service import OrderService
from storefront.core.state_machine import OrderStateMachine


async def _run_cli_interactive(cli_handler: CLICommandHandler) -> None:
    """Run interactive CLI loop.

    Provides a REPL-like interface for order commands.

    Args:
        cli_handler: CLICommandHandler instance for executing commands.
    """
    logger = logging.getLogger(__name__)
    logger.info("Starting interactive CLI. Type 'help' for available commands or 'exit' to quit.")

    loop = asyncio.get_running_loop()

    while True:
        try:
            # Read command from stdin in a thread to avoid blocking
            command_line = await loop.run_in_executor(
                None,
                input,
                "storefront> "
            )

            command_line = command_line.strip()

            if not command_line:
                continue

            if command_line.lower() == "exit":
                logger.info("Exiting CLI")
                break

            if command_line.lower() == "help":
                _print_cli_help()
                continue

            # Parse command and arguments
            parts = command_line.split(maxsplit=1)
            command = parts[0].lower()
            args_str = parts[1] if len(parts) > 1 else ""

            # Try to parse arguments as JSON
            try:
                args = json.loads(args_str) if args_str else {}
            except json.JSONDecodeError:
                logger.error("Invalid JSON arguments. Use 'help' for command syntax.")
                continue
            if not isinstance(args, dict):
                logger.error("Arguments must be a JSON object. Use 'help' for command syntax.")
                continue

            # Execute command
            try:
                result = await _execute_cli_command(cli_handler, command, args)
                print(json.dumps(result, indent=2, default=str))
            except Exception as e:
                logger.error(f"Command execution error: {e}", exc_info=True)
                print(json.dumps({
                    "status": "error",
                    "message": str(e)
                }, indent=2))

        except EOFError:
            # Ctrl+D to exit
            logger.info("EOF received, exiting CLI")
            break
        except KeyboardInterrupt:
            # Ctrl+C
            logger.info("Interrupted by user")
            continue
        except Exception as e:
            logger.error(f"CLI error: {e}", exc_info=True)


def _require(args: dict[str, Any], name: str) -> Any:
    if name not in args:
        raise ValueError(f"Missing required parameter: {name}")
    return args[name]


async def _execute_cli_command(
    cli_handler: CLICommandHandler,
    command: str,
    args: dict[str, Any],
) -> dict[str, Any]:
    """Execute a CLI command.

    Args:
        cli_handler: CLICommandHandler instance.
        command: Command name.
        args: Command arguments.

    Returns:
        Command result dictionary.

    Raises:
        ValueError: If command is not recognized or a required argument
            is missing.
    """
    if command == "list":
        return await cli_handler.list_orders(
            status=args.get("status"),
            search=args.get("search"),
            output_format=args.get("format", "json"),
        )

    elif command == "details":
        return await cli_handler.get_order_details(
            order_id=_require(args, "order_id"),
            output_format=args.get("format", "json"),
        )

    elif command == "summary":
        return await cli_handler.summarize_orders()

    elif command == "export":
        return await cli_handler.export_orders()

    elif command == "quote":
        return await cli_handler.quote_cart()

    elif command == "checkout":
        return await cli_handler.checkout(
            street=args.get("street"),
            city=args.get("city"),
            postal_code=args.get("postal_code"),
            payment_method=args.get("payment_method"),
            card=args.get("card"),
            verbose=args.get("verbose", False),
        )

    elif command == "cancel":
        return await cli_handler.cancel_order(
            order_id=_require(args, "order_id"),
            reason=args.get("reason"),
        )

    elif command == "deliver":
        return await cli_handler.mark_delivered(
            order_id=_require(args, "order_id"),
            note=args.get("note"),
        )

    elif command == "status":
        return await cli_handler.change_status(
            order_id=_require(args, "order_id"),
            status=_require(args, "status"),
        )

    elif command == "note":
        return await cli_handler.add_note(
            order_id=_require(args, "order_id"),
            text=_require(args, "text"),
            visibility=args.get("visibility", "private"),
        )

    elif command == "feedback":
        return await cli_handler.submit_feedback(
            order_id=_require(args, "order_id"),
            delivery_rating=args.get("delivery_rating", 0),
            delivery_comment=args.get("delivery_comment", ""),
            product_rating=args.get("product_rating", 0),
            product_comment=args.get("product_comment", ""),
        )

    else:
        raise ValueError(f"Unknown command: {command}. Use 'help' for available commands.")


def _print_cli_help() -> None:
    """Print CLI help message."""
    help_text = """
Available Commands (JSON format):

  list
    List your orders, newest first.
    Optional: status (draft, validated, processing, delivered, cancelled),
              search, format (json, text)

    Example: list {"status": "draft", "format": "text"}

  details
    Show one order with its lines, notes and available actions.
    Required: order_id

    Example: details {"order_id": 42}

  summary
    Number of orders, total spent and count per status.

    Example: summary

  export
    One flat row per order (reference, date, status, amounts, notes).

    Example: export

  quote
    Price the current cart, including delivery, without ordering.

    Example: quote

  checkout
    Place an order for the current cart.
    Required: street, city, postal_code, payment_method (cash, card)
    Required for card: card {"holder", "number", "expiry", "cvv"}

    Example: checkout {"street": "12 Rue Oqba", "city": "Rabat",
                       "postal_code": "10000", "payment_method": "cash"}

  cancel
    Cancel a draft order.
    Required: order_id
    Optional: reason

    Example: cancel {"order_id": 42, "reason": "ordered twice"}

  deliver
    Mark an order as delivered.
    Required: order_id
    Optional: note

    Example: deliver {"order_id": 42, "note": "left with the concierge"}

  status
    Move an order to another status.
    Required: order_id, status

    Example: status {"order_id": 42, "status": "validated"}

  note
    Add a note to an order.
    Required: order_id, text
    Optional: visibility (private, public)

    Example: note {"order_id": 42, "text": "call before delivery"}

  feedback
    Rate a delivered order (ratings 0-5).
    Required: order_id
    Optional: delivery_rating, delivery_comment, product_rating,
              product_comment

    Example: feedback {"order_id": 42, "delivery_rating": 5, "product_rating": 4}

  help
    Show this help message.

  exit
    Exit the CLI.

Note: All commands accept arguments as a single JSON object.
Provide the JSON after the command name on the same line.
    """
    print(help_text)


def configure_logging(log_level: str, log_format: str) -> None:
    """Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Log format (json, text).
    """
    # Map string level to logging constant
    level = getattr(logging, log_level, logging.INFO)

    if log_format == "json":
        format_str = '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}'
    else:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


@dataclass
class Application:
    """Wired adapters and services."""

    settings: Settings
    repository: DolibarrOrderRepository
    catalog: DolibarrCatalogAdapter
    order_service: OrderService
    cli_handler: CLICommandHandler

    async def close(self) -> None:
        await self.repository.close()
        await self.catalog.close()


def build_application(settings: Settings) -> Application:
    """Instantiate adapters and core services from settings.

    Args:
        settings: Validated application settings.

    Returns:
        Application with every component wired.
    """
    logger = logging.getLogger(__name__)
    logger.info("Initializing adapters...")

    repository = DolibarrOrderRepository(
        api_url=settings.api_url,
        api_key=settings.api_key,
        timeout=settings.request_timeout_seconds,
    )
    catalog = DolibarrCatalogAdapter(
        api_url=settings.api_url,
        api_key=settings.api_key,
        timeout=settings.request_timeout_seconds,
    )
    cart_store = JsonFileCartStore(settings.cart_store_path)
    location = StaticLocationAdapter(settings.user_location)
    logger.info(f"Cart store: {settings.cart_store_path}")

    if settings.notification_backend == "stdout":
        notifier = StdoutNotifier(assume_yes=settings.assume_yes)
        logger.info("Notification adapter: Stdout")
    else:
        raise ValueError(f"Unknown notification backend: {settings.notification_backend}")

    logger.info("Initializing core services...")
    state_machine = OrderStateMachine()
    order_service = OrderService(
        repository=repository,
        catalog=catalog,
        cart_store=cart_store,
        location=location,
        notifier=notifier,
        customer_id=settings.customer_id,
        store_location=settings.store_location,
        state_machine=state_machine,
        geolocation_timeout_seconds=settings.geolocation_timeout_seconds,
        idempotency_keys_enabled=settings.idempotency_keys_enabled,
    )

    return Application(
        settings=settings,
        repository=repository,
        catalog=catalog,
        order_service=order_service,
        cli_handler=CLICommandHandler(order_service, state_machine),
    )


async def bootstrap() -> None:
    """Load configuration, wire adapters, and start the application.

    This is the composition root: the single place where all components
    are instantiated and wired together.

    Steps:
    1. Load configuration from environment
    2. Configure logging
    3. Instantiate adapters and core services
    4. Run the interactive command loop

    Raises:
        SystemExit: On fatal errors (configuration, adapter initialization)
        asyncio.CancelledError: On graceful shutdown signal
    """
    # Step 1: Load configuration
    settings = load_settings()

    # Step 2: Configure logging
    configure_logging("DEBUG" if settings.debug else settings.log_level, settings.log_format)
    logger = logging.getLogger(__name__)
    logger.info("Loading storefront order system...")

    if not settings.customer_id:
        logger.warning("CUSTOMER_ID is not set, order history will be empty")

    # Step 3: Instantiate adapters and services
    app = build_application(settings)

    # Step 4: Run the command loop
    try:
        await _run_cli_interactive(app.cli_handler)
    finally:
        await app.close()


def main() -> None:
    """Application entry point.

    Loads configuration, wires adapters, initializes core services,
    and starts the interactive command loop.

    Exit codes:
        0: Successful shutdown
        1: Fatal bootstrap or runtime error
        130: Interrupted by user (SIGINT/KeyboardInterrupt)
    """
    logger = logging.getLogger(__name__)
    try:
        asyncio.run(bootstrap())
    except KeyboardInterrupt:
        logger.warning("Shutdown requested by user (SIGINT)")
        sys.exit(130)
    except asyncio.CancelledError:
        logger.info("Graceful shutdown completed")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

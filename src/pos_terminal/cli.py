"""Command-line entry points for the POS terminal.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into calls on the business layer, and printing the
results. Keeping the CLI thin lets tests and alternative front-ends reuse the
same parser configuration.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log
from .constants import PaymentMethod
from .errors import AuthorizationError, MissingReferenceError, PaymentFailedError, ValidationError
from .money import format_currency, format_payment_method, to_money
from .payment import TenderInput, parse_payment_method
from .receipt import render_receipt
from .transactions import Transaction


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="pos-cli",
        description="Command-line till for the POS terminal.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to searching upward from the working directory).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as cart edits and checkout."""
    specs = {
        "login": register_login_command(subparsers),
        "logout": register_logout_command(subparsers),
        "add": register_add_command(subparsers),
        "remove": register_remove_command(subparsers),
        "set-qty": register_set_quantity_command(subparsers),
        "clear": register_clear_command(subparsers),
        "checkout": register_checkout_command(subparsers),
        "settings": register_settings_command(subparsers),
        "export": register_export_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as listings and reports."""
    specs = {
        "products": register_products_command(subparsers),
        "cart": register_cart_command(subparsers),
        "history": register_history_command(subparsers),
        "show": register_show_command(subparsers),
        "summary": register_summary_command(subparsers),
        "dashboard": register_dashboard_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def add_history_filter_arguments(parser: argparse.ArgumentParser) -> None:
    """Attach the shared transaction history filters to ``parser``."""
    parser.add_argument("--start", default=None, help="First day (YYYY-MM-DD) or instant to include.")
    parser.add_argument("--end", default=None, help="Last day (YYYY-MM-DD, whole day included) or instant.")
    parser.add_argument("--search", default="", help="Match receipt number, cashier, or item name.")
    parser.add_argument(
        "--method",
        choices=[member.value for member in PaymentMethod],
        default=None,
    )


def register_login_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``login``."""
    name = "login"
    help_text = "Sign a cashier in to the till."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--username", required=True)
        parser.add_argument("--password", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_login)


def register_logout_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``logout``."""
    name = "logout"
    help_text = "Sign the current cashier out."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_logout)


def register_add_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add``."""
    name = "add"
    help_text = "Add a product to the cart."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--quantity", type=int, default=1)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add)


def register_remove_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``remove``."""
    name = "remove"
    help_text = "Remove a product line from the cart."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_remove)


def register_set_quantity_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``set-qty``."""
    name = "set-qty"
    help_text = "Set the quantity of a cart line (0 removes it)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--quantity", type=int, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_set_quantity)


def register_clear_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``clear``."""
    name = "clear"
    help_text = "Empty the cart."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_clear)


def register_checkout_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``checkout``."""
    name = "checkout"
    help_text = "Take payment for the cart and print the receipt."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(
            "--method",
            choices=[member.value for member in PaymentMethod],
            required=True,
        )
        parser.add_argument("--tendered", default=None, help="Cash received, e.g. 10.00 (cash only).")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_checkout)


def register_settings_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``settings``."""
    name = "settings"
    help_text = "Show or update store settings."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--tax-rate", default=None, help="Fraction between 0 and 1, e.g. 0.08.")
        parser.add_argument("--currency", default=None)
        parser.add_argument("--store-name", default=None)
        parser.add_argument("--store-address", default=None)
        parser.add_argument("--store-phone", default=None)
        parser.add_argument("--receipt-footer", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_settings)


def register_export_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export``."""
    name = "export"
    help_text = "Export transactions to an Excel workbook."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--output", type=Path, required=True)
        add_history_filter_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export)


def register_products_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``products``."""
    name = "products"
    help_text = "List sellable products."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--search", default="")
        parser.add_argument("--category", default="")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_products)


def register_cart_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``cart``."""
    name = "cart"
    help_text = "Display the cart and its totals."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_cart)


def register_history_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``history``."""
    name = "history"
    help_text = "Display committed transactions, newest first."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        add_history_filter_arguments(parser)
        parser.add_argument("--limit", type=int, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_history)


def register_show_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``show``."""
    name = "show"
    help_text = "Print the receipt of a transaction."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--transaction-id", required=True, help="Transaction id or receipt number.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_show)


def register_summary_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``summary``."""
    name = "summary"
    help_text = "Display revenue, tax, and payment method totals."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        add_history_filter_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_summary)


def register_dashboard_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``dashboard``."""
    name = "dashboard"
    help_text = "Display today's and this week's figures."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_dashboard)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    return core_logic.load_runtime_context(Path(config_path) if config_path is not None else None)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def parse_time_bound(text: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """Parse a ``--start``/``--end`` value.

    A bare date expands to the start of that day, or to its last microsecond
    when ``end_of_day`` is set, so ``--end 2025-01-31`` includes the whole
    day. Naive values are interpreted as UTC.

    Raises:
        ValidationError: If ``text`` is neither a date nor an ISO-8601 instant.
    """
    if text is None or not text.strip():
        return None
    raw = text.strip()
    try:
        if len(raw) == 10:
            day = date.fromisoformat(raw)
            return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=UTC)
        moment = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid date or instant: {text!r}") from exc
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)


def translate_history_filters(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into ``filter_transactions`` keyword arguments."""
    return {
        "start": parse_time_bound(getattr(args, "start", None)),
        "end": parse_time_bound(getattr(args, "end", None), end_of_day=True),
        "search": getattr(args, "search", "") or "",
        "method": getattr(args, "method", None),
    }


def translate_checkout(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into checkout arguments.

    The tender is typed through :class:`TenderInput` so the same keypad rules
    apply as at the till: one decimal point and at most two decimal places.
    """
    method = parse_payment_method(args.method)
    tendered: Optional[Decimal] = None
    if args.tendered is not None:
        tendered = TenderInput(args.tendered).amount
    return {"method": method, "tendered": tendered}


def translate_settings(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into settings updates, skipping unset options."""
    changes: Dict[str, Any] = {}
    if args.tax_rate is not None:
        changes["tax_rate"] = to_money(args.tax_rate)
    for option in ("currency", "store_name", "store_address", "store_phone", "receipt_footer"):
        value = getattr(args, option)
        if value is not None:
            changes[option] = value
    return changes


def _currency(context: core_logic.RuntimeContext) -> str:
    return context.settings.current_settings().currency


def _print_transactions(context: core_logic.RuntimeContext, transactions: Sequence[Transaction]) -> None:
    currency = _currency(context)
    if not transactions:
        print("No transactions found.")
        return
    for transaction in transactions:
        print(
            f"{transaction.receipt_number:<20} "
            f"{transaction.timestamp.strftime('%Y-%m-%d %H:%M'):<17} "
            f"{transaction.cashier_name:<16} "
            f"{transaction.item_count:>3} items "
            f"{format_currency(transaction.total, currency):>12} "
            f"{format_payment_method(transaction.payment_method)}"
        )


def _print_summary(context: core_logic.RuntimeContext, summary: core_logic.TransactionSummary) -> None:
    currency = _currency(context)
    print(f"Transactions: {summary.total_transactions}")
    print(f"Revenue:      {format_currency(summary.total_revenue, currency)}")
    print(f"Tax:          {format_currency(summary.total_tax, currency)}")
    print(f"Average:      {format_currency(summary.average_order, currency)}")
    for method, amount in summary.payment_breakdown.items():
        print(f"  {format_payment_method(method):<14} {format_currency(amount, currency)}")


def run_login(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the login workflow."""
    user = core_logic.login(context, args.username, args.password)
    print(f"Logged in as {user.name}.")
    return 0


def run_logout(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the logout workflow."""
    core_logic.logout(context)
    print("Logged out.")
    return 0


def run_add(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-to-cart workflow."""
    line = core_logic.add_to_cart(context, args.product_id, args.quantity)
    print(f"{line.name} x{line.quantity}")
    return 0


def run_remove(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the remove-from-cart workflow."""
    core_logic.remove_from_cart(context, args.product_id)
    return 0


def run_set_quantity(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the set-quantity workflow."""
    core_logic.set_cart_quantity(context, args.product_id, args.quantity)
    return 0


def run_clear(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the clear-cart workflow."""
    core_logic.clear_cart(context)
    return 0


def run_checkout(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the checkout workflow and print the receipt."""
    payload = translate_checkout(args)
    transaction = core_logic.checkout(context, **payload)
    print(render_receipt(transaction, context.settings.current_settings()))
    return 0


def run_settings(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the settings workflow."""
    changes = translate_settings(args)
    settings = core_logic.update_store_settings(context, **changes) if changes else context.settings.current_settings()
    print(f"Store:    {settings.store_name}")
    print(f"Tax rate: {settings.tax_rate}")
    print(f"Currency: {settings.currency}")
    return 0


def run_export(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the export workflow."""
    transactions = core_logic.filter_transactions(context, **translate_history_filters(args))
    destination = core_logic.export_transactions(context, args.output, transactions)
    print(f"Exported {len(transactions)} transactions to {destination}")
    return 0


def run_products(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the product listing workflow."""
    currency = _currency(context)
    for product in core_logic.list_products(context, search_term=args.search, category=args.category):
        print(
            f"{product.id:<8} {product.name:<28} {format_currency(product.price, currency):>10} "
            f"stock={product.stock}"
        )
    return 0


def run_cart(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the cart display workflow."""
    currency = _currency(context)
    if context.cart.is_empty:
        print("Cart is empty.")
        return 0
    for line in context.cart.lines:
        print(f"{line.product_id:<8} {line.name:<28} {line.quantity:>3} x {format_currency(line.unit_price, currency)}")
    totals = core_logic.cart_totals(context)
    print(f"Subtotal: {format_currency(totals.subtotal, currency)}")
    print(f"Tax:      {format_currency(totals.tax, currency)}")
    print(f"Total:    {format_currency(totals.total, currency)}")
    return 0


def run_history(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the transaction history workflow."""
    transactions = core_logic.filter_transactions(context, **translate_history_filters(args))
    if args.limit is not None:
        transactions = transactions[: args.limit]
    _print_transactions(context, transactions)
    return 0


def run_show(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the receipt lookup workflow."""
    transaction = core_logic.get_transaction(context, args.transaction_id)
    if transaction is None:
        raise MissingReferenceError(f"Unknown transaction: {args.transaction_id}")
    print(render_receipt(transaction, context.settings.current_settings()))
    return 0


def run_summary(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the summary reporting workflow."""
    transactions = core_logic.filter_transactions(context, **translate_history_filters(args))
    _print_summary(context, core_logic.summarize_transactions(transactions))
    return 0


def run_dashboard(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the dashboard reporting workflow."""
    currency = _currency(context)
    now = datetime.now(UTC)
    today = core_logic.daily_metrics(context.transactions, now.date())
    week = core_logic.weekly_metrics(context.transactions, now)
    print(f"Today: {today.total_transactions} orders, {format_currency(today.total_revenue, currency)}")
    print(f"Last 7 days: {week.total_transactions} orders, {format_currency(week.total_revenue, currency)}")
    low_stock = context.catalog.low_stock()
    if low_stock:
        print("Low stock:")
        for product in low_stock:
            print(f"  {product.name} ({product.stock} left)")
    top = core_logic.top_products(context.transactions)
    if top:
        print("Top products:")
        for sales in top:
            print(f"  {sales.name}: {sales.quantity} sold, {format_currency(sales.revenue, currency)}")
    recent = context.transactions.recent(5)
    if recent:
        print("Recent transactions:")
        _print_transactions(context, recent)
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, (ValidationError, AuthorizationError, PaymentFailedError)):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)

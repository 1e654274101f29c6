# Overview: Flask CLI command groups for bootstrap, board inspection and order handling.

# backend/orderboard/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Catalog, clients, weighed units and a handful of orders for today.
#
# Orders:
# - python -m flask orders list [--date 2026-10-18] [--status ready] [--search maria] [--delivery pickup]
# - python -m flask orders board [--delivery all]
#   Print the four kanban columns with countdown / late flags.
# - python -m flask orders move <order_id> <status>
#   Same as dropping a card on a column.
# - python -m flask orders advance <order_id>
#   Move to the next status of the happy path.
# - python -m flask orders link <order_id> <line_id> <unit_id>
#   Bind a weighed unit to a line item (auto-advances to ready when complete).
# - python -m flask orders upcoming [--days 3]
#
# Inventory units:
# - python -m flask units list --product-id 1
# - python -m flask units create --product-id 1 --weight 1250 [--price 5990]

import click
from contextlib import contextmanager
from datetime import timedelta
from flask import current_app
from flask.cli import with_appcontext

from .board.kanban import KanbanBoard
from .errors import OrderBoardError
from .extensions import db, get_notifier, get_repository
from .models import CatalogProduct, Client, ClientAddress
from .services import inventory_unit_service
from .services.linking_service import ItemLinkingFlow
from .services.notification_service import STATUS_DELIVERED, STATUS_READY
from .services.order_builder import OrderBuilder
from .services.order_status import BOARD_STATUSES, ORDER_STATUSES, STATUS_LABELS
from .services.order_types import DELIVERY_FILTERS, OrderFilters
from .time_utils import parse_iso_date, to_utc_z, utcnow


def _money(cents: int) -> str:
    return f"R$ {cents / 100:.2f}"


@contextmanager
def _echo_notifications(notifier):
    """Print ready/delivered hooks for the duration of one command."""
    unsubscribers = [
        notifier.subscribe(STATUS_READY, lambda order_id, status: click.echo(f"NOTIFY Order {order_id} is ready")),
        notifier.subscribe(STATUS_DELIVERED, lambda order_id, status: click.echo(f"NOTIFY Order {order_id} delivered")),
    ]
    try:
        yield notifier
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Seed a small rotisserie catalog, two clients, weighed units and three orders.

    Safe to rerun for the catalog and clients (matched by name); orders are
    always added.
    """
    def ensure_product(name, price_cents, internal, shelf_life_days=None):
        product = db.session.query(CatalogProduct).filter_by(name=name).first()
        if product is None:
            product = CatalogProduct(
                name=name,
                base_price_cents=price_cents,
                is_internal=internal,
                shelf_life_days=shelf_life_days,
            )
            db.session.add(product)
        return product

    def ensure_client(name, phone):
        client = db.session.query(Client).filter_by(name=name).first()
        if client is None:
            client = Client(name=name, phone=phone)
            db.session.add(client)
        return client

    chicken = ensure_product("Frango Assado", 5990, True, shelf_life_days=2)
    ribs = ensure_product("Costela Assada", 8990, True, shelf_life_days=2)
    farofa = ensure_product("Farofa", 1200, False)
    maionese = ensure_product("Maionese", 1500, False)
    maria = ensure_client("Maria Souza", "11999990000")
    joao = ensure_client("Joao Lima", "11988880000")
    db.session.flush()

    if not maria.addresses:
        db.session.add(ClientAddress(
            client_id=maria.id, street="Rua das Flores", number="120", neighborhood="Centro", city="Sao Paulo", state="SP",
        ))
    db.session.commit()

    repository = get_repository()
    for _ in range(2):
        repository.create_unit(chicken.id, 1300)
    repository.create_unit(ribs.id, 1800)

    now = utcnow()
    builder = OrderBuilder(
        repository,
        notifier=get_notifier(),
        default_delivery_fee_cents=current_app.config["FIXED_DELIVERY_FEE_CENTS"],
    )

    builder.open()
    builder.set_client(maria.id)
    builder.add_item(chicken.id, chicken.name, chicken.base_price_cents)
    builder.add_item(farofa.id, farofa.name, farofa.base_price_cents, quantity=2)
    builder.set_schedule(now + timedelta(hours=2))
    builder.add_payment("pix", 3000)
    first = builder.submit()

    builder.open()
    builder.set_client(joao.id)
    builder.add_item(ribs.id, ribs.name, ribs.base_price_cents)
    builder.add_item(maionese.id, maionese.name, maionese.base_price_cents)
    builder.set_schedule(now + timedelta(minutes=40))
    builder.add_payment("cash", 11000)
    second = builder.submit()

    address = db.session.query(ClientAddress).filter_by(client_id=maria.id).first()
    builder.open()
    builder.set_client(maria.id)
    builder.add_item(chicken.id, chicken.name, chicken.base_price_cents, quantity=2)
    builder.set_delivery(True, address_id=address.id)
    builder.set_schedule(now + timedelta(days=1))
    third = builder.submit()

    click.echo(
        f"PASS Seeded orders #{first.display_number}, #{second.display_number}, #{third.display_number}"
    )


@click.group('orders')
def orders_group():
    """Order board commands."""


@orders_group.command('list')
@click.option('--date', 'date_str', help='Local day YYYY-MM-DD')
@click.option('--status', type=click.Choice(('all',) + ORDER_STATUSES), default='all', show_default=True)
@click.option('--search', help='Display number or client name')
@click.option('--delivery', type=click.Choice(DELIVERY_FILTERS), default='all', show_default=True)
@with_appcontext
def list_orders(date_str, status, search, delivery):
    """List orders the way the board sees them."""
    filters = OrderFilters(date=parse_iso_date(date_str), status=status, search=search, delivery=delivery)
    orders = get_repository().list_orders(filters)

    if not orders:
        click.echo("No orders found.")
        return

    click.echo(f"\n{'#':<6} {'Status':<12} {'Scheduled':<22} {'Client':<24} {'Total':>12}")
    click.echo("-" * 80)
    for order in orders:
        client = order.client.name if order.client else "-"
        click.echo(
            f"{order.display_number:<6} {order.status:<12} {to_utc_z(order.scheduled_at) or '-':<22} "
            f"{client[:24]:<24} {_money(order.total_cents):>12}"
        )
    click.echo(f"\nTotal: {len(orders)} order(s)")


@orders_group.command('board')
@click.option('--delivery', type=click.Choice(DELIVERY_FILTERS), default='all', show_default=True)
@with_appcontext
def show_board(delivery):
    """Print the kanban columns."""
    board = KanbanBoard(get_repository(), notifier=get_notifier(), filters=OrderFilters(delivery=delivery))
    board.refresh()

    for status, cards in board.columns().items():
        click.echo(f"\n== {STATUS_LABELS[status]} ({len(cards)}) ==")
        for card in cards:
            flags = []
            if card.late:
                flags.append("LATE")
            if card.countdown:
                flags.append(f"in {card.countdown}")
            if card.is_delivery:
                flags.append("delivery")
            items = ", ".join(card.items) + (" ..." if card.has_more_items else "")
            click.echo(
                f"  #{card.display_number} {card.client_name or '-'} | {items} | "
                f"{_money(card.total_cents)} {card.payment_state}"
                + (f" [{' / '.join(flags)}]" if flags else "")
            )


def _run_move(order_id, action):
    board = KanbanBoard(get_repository(), notifier=get_notifier())
    with _echo_notifications(board.notifier):
        board.refresh()
        result = action(board)
    if not result.accepted:
        click.echo(f"SKIP {result.reason}: order {order_id} -> {result.target_status or '-'}")
        return
    try:
        order = result.future.result()
    except OrderBoardError as e:
        click.echo(f"FAIL {e.message} {e.details or ''}")
        return
    click.echo(f"PASS Order #{order.display_number} is now {order.status}")


@orders_group.command('move')
@click.argument('order_id')
@click.argument('status', type=click.Choice(BOARD_STATUSES))
@with_appcontext
def move_order(order_id, status):
    """Drop an order on a column."""
    _run_move(order_id, lambda board: board.drop(order_id, status))


@orders_group.command('advance')
@click.argument('order_id')
@with_appcontext
def advance_order(order_id):
    """Move an order one step forward."""
    _run_move(order_id, lambda board: board.advance(order_id))


@orders_group.command('link')
@click.argument('order_id')
@click.argument('line_id', type=int)
@click.argument('unit_id', type=int)
@with_appcontext
def link_unit(order_id, line_id, unit_id):
    """Bind a weighed unit to an order line."""
    flow = ItemLinkingFlow(get_repository(), notifier=get_notifier())
    try:
        with _echo_notifications(flow.notifier):
            outcome = flow.link(order_id, line_id, unit_id)
    except OrderBoardError as e:
        click.echo(f"FAIL {e.message} {e.details or ''}")
        return

    click.echo(f"PASS Line {line_id} linked to unit {unit_id}")
    if outcome.partial:
        click.echo(f"WARN Ready check failed: {outcome.status_error.message}")
    elif outcome.became_ready:
        click.echo("PASS All items linked; order moved to ready")


@orders_group.command('upcoming')
@click.option('--days', type=int, default=3, show_default=True)
@with_appcontext
def upcoming(days):
    """Open orders scheduled from today through the next N days."""
    orders = get_repository().upcoming_orders(days)
    if not orders:
        click.echo("No upcoming orders.")
        return
    for order in orders:
        client = order.client.name if order.client else "-"
        click.echo(f"#{order.display_number:<6} {to_utc_z(order.scheduled_at):<22} {order.status:<10} {client}")


@click.group('units')
def units_group():
    """Physical inventory unit commands."""


@units_group.command('list')
@click.option('--product-id', type=int, help='Catalog product ID')
@click.option('--status', default='available', show_default=True, help='Unit status ("all" for every status)')
@with_appcontext
def list_units(product_id, status):
    try:
        units = inventory_unit_service.list_units(
            catalog_product_id=product_id,
            status=None if status == 'all' else status,
        )
    except OrderBoardError as e:
        click.echo(f"FAIL {e.message}")
        return

    if not units:
        click.echo("No units found.")
        return
    for unit in units:
        click.echo(
            f"{unit.id:<6} product={unit.catalog_product_id:<4} {unit.weight_grams:>6} g "
            f"{_money(unit.sale_price_cents):>12} {unit.status:<10} expires={to_utc_z(unit.expires_at) or '-'}"
        )


@units_group.command('create')
@click.option('--product-id', type=int, required=True, help='Catalog product ID')
@click.option('--weight', 'weight_grams', type=int, required=True, help='Weight in grams')
@click.option('--price', 'price_cents', type=int, help='Sale price in cents (defaults to catalog price)')
@click.option('--barcode', type=int, help='Scale barcode')
@with_appcontext
def create_unit(product_id, weight_grams, price_cents, barcode):
    try:
        unit = get_repository().create_unit(product_id, weight_grams, sale_price_cents=price_cents, scale_barcode=barcode)
    except OrderBoardError as e:
        click.echo(f"FAIL {e.message} {e.details or ''}")
        return
    click.echo(f"PASS Created unit {unit.id} ({unit.weight_grams} g, {_money(unit.sale_price_cents)})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(units_group)

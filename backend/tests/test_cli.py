from orderboard.extensions import db
from orderboard.models import CatalogProduct, InventoryUnit, Order


def _seed(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["system", "seed-demo"])
    assert result.exit_code == 0, result.output
    return runner, result


class TestSystemCommands:

    def test_seed_demo(self, app, db_session):
        _, result = _seed(app)
        assert "PASS Seeded orders #1, #2, #3" in result.output
        assert db.session.query(Order).count() == 3
        assert db.session.query(InventoryUnit).filter_by(status="available").count() == 3


class TestOrderCommands:

    def test_board_lists_columns(self, app, db_session):
        runner, _ = _seed(app)
        result = runner.invoke(args=["orders", "board"])
        assert result.exit_code == 0
        assert "== Recebido (3) ==" in result.output
        assert "== Pronto (0) ==" in result.output

    def test_list_with_search(self, app, db_session):
        runner, _ = _seed(app)
        result = runner.invoke(args=["orders", "list", "--search", "joao"])
        assert "Joao Lima" in result.output
        assert "Total: 1 order(s)" in result.output

    def test_advance_and_move(self, app, db_session):
        runner, _ = _seed(app)
        order = db.session.query(Order).filter_by(display_number=2).one()

        result = runner.invoke(args=["orders", "advance", order.id])
        assert "PASS Order #2 is now preparing" in result.output

        result = runner.invoke(args=["orders", "move", order.id, "delivered"])
        assert "NOTIFY Order" in result.output
        assert "is now delivered" in result.output

        result = runner.invoke(args=["orders", "move", order.id, "ready"])
        assert "SKIP terminal" in result.output

    def test_link_moves_order_to_ready(self, app, db_session):
        runner, _ = _seed(app)
        order = db.session.query(Order).filter_by(display_number=1).one()
        line = next(line for line in order.lines if line.catalog_product.is_internal)
        unit = db.session.query(InventoryUnit).filter_by(
            catalog_product_id=line.catalog_product_id, status="available",
        ).first()

        result = runner.invoke(args=["orders", "link", order.id, str(line.id), str(unit.id)])

        assert f"PASS Line {line.id} linked to unit {unit.id}" in result.output
        assert "PASS All items linked; order moved to ready" in result.output
        assert result.output.count("NOTIFY") == 1

    def test_link_failure_is_reported(self, app, db_session):
        runner, _ = _seed(app)
        order = db.session.query(Order).filter_by(display_number=1).one()
        result = runner.invoke(args=["orders", "link", order.id, "999999", "1"])
        assert "FAIL Order line not found" in result.output


class TestUnitCommands:

    def test_create_and_list(self, app, db_session):
        runner, _ = _seed(app)
        ribs = db.session.query(CatalogProduct).filter_by(name="Costela Assada").one()

        result = runner.invoke(args=["units", "create", "--product-id", str(ribs.id), "--weight", "1700"])
        assert "PASS Created unit" in result.output

        result = runner.invoke(args=["units", "list", "--product-id", str(ribs.id)])
        assert result.output.count("1700 g") == 1

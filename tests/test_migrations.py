import types

import pytest
import sqlalchemy as sa

from spiral.core.errors import IrreversibleMigration, MigrationFailed
from spiral.migrations.registry import MIGRATIONS
from spiral.migrations.runner import MigrationRunner


def _ledger_ids(engine):
    with engine.connect() as conn:
        return [r[0] for r in conn.execute(sa.text("SELECT id FROM migrations ORDER BY seq"))]


def _columns(engine, table):
    return {c["name"] for c in sa.inspect(engine).get_columns(table)}


def test_up_applies_everything_in_order(engine):
    applied = MigrationRunner(engine).up()

    assert applied == [m.ID for m in MIGRATIONS]
    assert _ledger_ids(engine) == ["001", "002", "003", "004", "005", "006", "007"]
    tables = set(sa.inspect(engine).get_table_names())
    assert {"persons", "email_history", "products", "songs", "album_songs", "cart_items", "orders"} <= tables


def test_second_up_is_a_noop(engine):
    runner = MigrationRunner(engine)
    runner.up()

    assert runner.up() == []
    assert len(_ledger_ids(engine)) == len(MIGRATIONS)


def test_status_partitions_executed_and_pending(engine):
    MigrationRunner(engine, MIGRATIONS[:3]).up()

    status = MigrationRunner(engine).status()

    assert [s.id for s in status if s.executed] == ["001", "002", "003"]
    assert [s.id for s in status if not s.executed] == ["004", "005", "006", "007"]
    assert all(s.executed_at is not None for s in status if s.executed)


def test_up_runs_only_the_missing_ones(engine):
    MigrationRunner(engine, MIGRATIONS[:3]).up()

    applied = MigrationRunner(engine, MIGRATIONS[:5]).up()

    assert applied == ["004", "005"]
    assert _ledger_ids(engine) == ["001", "002", "003", "004", "005"]


def test_failed_migration_stops_the_run_and_is_not_recorded(engine):
    def broken_up(conn):
        conn.execute(sa.text("CREATE TABLE scratch (id INTEGER PRIMARY KEY)"))
        raise RuntimeError("boom")

    broken = types.SimpleNamespace(ID="900", NAME="broken", up=broken_up, down=lambda conn: None)
    never = types.SimpleNamespace(ID="901", NAME="never", up=lambda conn: None, down=lambda conn: None)
    runner = MigrationRunner(engine, [*MIGRATIONS[:2], broken, never])

    with pytest.raises(MigrationFailed) as exc_info:
        runner.up()

    assert exc_info.value.migration_id == "900"
    assert _ledger_ids(engine) == ["001", "002"]
    # DDL compreso: la transazione della migrazione fallita è stata annullata
    assert "scratch" not in sa.inspect(engine).get_table_names()
    assert [s.id for s in runner.status() if not s.executed] == ["900", "901"]


def test_down_of_irreversible_migration_fails_loudly(engine):
    runner = MigrationRunner(engine)
    runner.up()

    with pytest.raises(IrreversibleMigration) as exc_info:
        runner.down()

    assert exc_info.value.migration_id == "007"
    assert "manual" in str(exc_info.value).lower() or "by hand" in str(exc_info.value)
    assert _ledger_ids(engine)[-1] == "007"
    assert "song_id" in _columns(engine, "order_items")


def test_down_with_empty_ledger_is_a_noop(engine):
    assert MigrationRunner(engine).down() is None


def test_down_removes_last_permissions_migration(engine):
    runner = MigrationRunner(engine, MIGRATIONS[:5])
    runner.up()

    assert runner.down() == "005"

    with engine.connect() as conn:
        names = {r[0] for r in conn.execute(sa.text("SELECT name FROM permissions"))}
    assert "songs.manage" not in names
    assert "products.create" in names
    assert _ledger_ids(engine) == ["001", "002", "003", "004"]


def _seed_v5(engine):
    with engine.begin() as conn:
        conn.execute(
            sa.text(
                "INSERT INTO persons (id, first_name, last_name, is_active, created_at, updated_at) "
                "VALUES (1, 'Ann', 'Lee', 1, '2024-01-01 00:00:00', '2024-01-01 00:00:00')"
            )
        )
        conn.execute(
            sa.text(
                "INSERT INTO products (id, title, artist, price, image, year, genre, stock, type, created_at) "
                "VALUES (7, 'Innervisions', 'Stevie Wonder', 12.50, 'x.jpg', 1973, 'Soul', 5, 'Album', "
                "'2024-01-01 00:00:00')"
            )
        )
        conn.execute(
            sa.text(
                "INSERT INTO songs (id, title, is_explicit, individual_price, created_at, updated_at) "
                "VALUES (3, 'Living for the City', 0, 0.99, '2024-01-01 00:00:00', '2024-01-01 00:00:00')"
            )
        )
        conn.execute(
            sa.text(
                "INSERT INTO cart_items (id, person_id, product_id, quantity, added_at) "
                "VALUES (11, 1, 7, 2, '2024-01-01 00:00:00')"
            )
        )


def test_cart_rebuild_keeps_rows_and_adds_song_support(engine):
    MigrationRunner(engine, MIGRATIONS[:5]).up()
    _seed_v5(engine)

    MigrationRunner(engine, MIGRATIONS[:6]).up()

    assert "song_id" in _columns(engine, "cart_items")
    index_names = {i["name"] for i in sa.inspect(engine).get_indexes("cart_items")}
    assert {"uq_cart_items_product", "uq_cart_items_song"} <= index_names
    with engine.begin() as conn:
        row = conn.execute(sa.text("SELECT id, product_id, song_id, quantity FROM cart_items")).one()
        assert tuple(row) == (11, 7, None, 2)
        conn.execute(
            sa.text("INSERT INTO cart_items (person_id, song_id, quantity, added_at) VALUES (1, 3, 1, '2024-01-02')")
        )


def test_cart_rebuild_enforces_exactly_one_item(engine):
    MigrationRunner(engine, MIGRATIONS[:6]).up()
    _seed_v5(engine)

    with pytest.raises(sa.exc.IntegrityError):
        with engine.begin() as conn:
            conn.execute(
                sa.text(
                    "INSERT INTO cart_items (person_id, product_id, song_id, quantity, added_at) "
                    "VALUES (1, 7, 3, 1, '2024-01-02')"
                )
            )


def test_cart_rebuild_down_drops_song_lines(engine):
    runner = MigrationRunner(engine, MIGRATIONS[:6])
    runner.up()
    _seed_v5(engine)
    with engine.begin() as conn:
        conn.execute(
            sa.text("INSERT INTO cart_items (person_id, song_id, quantity, added_at) VALUES (1, 3, 1, '2024-01-02')")
        )

    assert runner.down() == "006"

    assert "song_id" not in _columns(engine, "cart_items")
    with engine.connect() as conn:
        rows = conn.execute(sa.text("SELECT id, product_id, quantity FROM cart_items")).all()
    assert [tuple(r) for r in rows] == [(11, 7, 2)]


def test_order_items_rebuild_keeps_history_and_accepts_song_lines(engine):
    MigrationRunner(engine, MIGRATIONS[:6]).up()
    _seed_v5(engine)
    with engine.begin() as conn:
        conn.execute(
            sa.text(
                "INSERT INTO orders (id, person_id, order_number, status, subtotal, discount_amount, "
                "tax_amount, total_amount, created_at, updated_at) "
                "VALUES (5, 1, 'ORD-20240101-00001', 'paid', 25.00, 0, 2.00, 27.00, "
                "'2024-01-01 00:00:00', '2024-01-01 00:00:00')"
            )
        )
        conn.execute(
            sa.text(
                "INSERT INTO order_items (id, order_id, product_id, quantity, unit_price, line_total, created_at) "
                "VALUES (21, 5, 7, 2, 12.50, 25.00, '2024-01-01 00:00:00')"
            )
        )

    MigrationRunner(engine).up()

    assert "song_id" in _columns(engine, "order_items")
    with engine.begin() as conn:
        row = conn.execute(
            sa.text("SELECT id, order_id, product_id, song_id, quantity, line_total FROM order_items")
        ).one()
        assert tuple(row[:5]) == (21, 5, 7, None, 2)
        assert float(row[5]) == 25.0
        assert conn.execute(sa.text("PRAGMA foreign_key_check")).all() == []
        conn.execute(
            sa.text(
                "INSERT INTO order_items (order_id, song_id, quantity, unit_price, line_total, created_at) "
                "VALUES (5, 3, 1, 0.99, 0.99, '2024-01-02 00:00:00')"
            )
        )

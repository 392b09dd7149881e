"""
Runner delle migrazioni: ledger `migrations`, up / down / status.

Ogni migrazione gira nella sua transazione insieme alla riga di ledger,
quindi una migrazione fallita non risulta mai eseguita. Va lanciato
offline (CLI), mai in parallelo al traffico dell'app.
"""
from dataclasses import dataclass
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from ..core.clock import utcnow
from ..core.errors import IrreversibleMigration, MigrationFailed
from ..core.logging import get_logger
from .registry import MIGRATIONS

log = get_logger(__name__)

_meta = sa.MetaData()

ledger = sa.Table(
    "migrations",
    _meta,
    sa.Column("seq", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("id", sa.String(40), unique=True, nullable=False),
    sa.Column("name", sa.String(200), nullable=False),
    sa.Column("executed_at", sa.DateTime, nullable=False),
)


@dataclass
class MigrationStatus:
    id: str
    name: str
    executed: bool
    executed_at: datetime | None = None


class MigrationRunner:
    def __init__(self, engine: Engine, migrations=None):
        self.engine = engine
        self.migrations = list(MIGRATIONS if migrations is None else migrations)
        self._by_id = {m.ID: m for m in self.migrations}

    def _ensure_ledger(self) -> None:
        with self.engine.begin() as conn:
            ledger.create(conn, checkfirst=True)

    def _executed(self, conn) -> list:
        return conn.execute(sa.select(ledger).order_by(ledger.c.seq)).all()

    def status(self) -> list[MigrationStatus]:
        self._ensure_ledger()
        with self.engine.connect() as conn:
            done = {row.id: row.executed_at for row in self._executed(conn)}
        return [
            MigrationStatus(id=m.ID, name=m.NAME, executed=m.ID in done, executed_at=done.get(m.ID))
            for m in self.migrations
        ]

    def pending(self) -> list:
        done = {s.id for s in self.status() if s.executed}
        return [m for m in self.migrations if m.ID not in done]

    def up(self) -> list[str]:
        """Applica in ordine le migrazioni mancanti; si ferma alla prima che fallisce."""
        todo = self.pending()
        if not todo:
            log.info("No pending migrations")
            return []

        applied = []
        for migration in todo:
            try:
                with self.engine.begin() as conn:
                    migration.up(conn)
                    conn.execute(
                        ledger.insert().values(id=migration.ID, name=migration.NAME, executed_at=utcnow())
                    )
            except Exception as exc:
                log.exception("Migration %s (%s) failed", migration.ID, migration.NAME)
                raise MigrationFailed(migration.ID, str(exc)) from exc
            log.info("Applied migration %s (%s)", migration.ID, migration.NAME)
            applied.append(migration.ID)
        return applied

    def down(self) -> str | None:
        """Annulla l'ultima migrazione del ledger. None se non c'è niente da annullare."""
        self._ensure_ledger()
        with self.engine.connect() as conn:
            rows = self._executed(conn)
        if not rows:
            log.info("Nothing to roll back")
            return None

        last = rows[-1]
        migration = self._by_id.get(last.id)
        if migration is None:
            raise MigrationFailed(last.id, "not in the list of known migrations")

        try:
            with self.engine.begin() as conn:
                migration.down(conn)
                conn.execute(ledger.delete().where(ledger.c.id == migration.ID))
        except IrreversibleMigration:
            log.error("Migration %s (%s) is irreversible", migration.ID, migration.NAME)
            raise
        except Exception as exc:
            log.exception("Rollback of migration %s (%s) failed", migration.ID, migration.NAME)
            raise MigrationFailed(migration.ID, str(exc)) from exc

        log.info("Rolled back migration %s (%s)", migration.ID, migration.NAME)
        return migration.ID

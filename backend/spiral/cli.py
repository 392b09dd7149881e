"""
cli.py - comandi di manutenzione di Spiral.

    $ spiral migrate status
    $ spiral migrate up
    $ spiral migrate down
    $ spiral artists merge 12 40
    $ spiral roles grant mario admin
    $ spiral serve --port 8000

Le migrazioni vanno lanciate a app ferma: il runner non è pensato per
girare in parallelo alle richieste.
"""
import click
import uvicorn

from .core.errors import SpiralError
from .database import engine, make_engine, make_sessionmaker, session_scope
from .migrations.runner import MigrationRunner
from .models import registry  # noqa: F401
from .models.person import Customer
from .services import artists, rbac


@click.group()
@click.option("--db-url", envvar="DB_URL", default=None, metavar="URL", help="Override the configured database.")
@click.pass_context
def cli(ctx: click.Context, db_url: str | None):
    """Spiral Records maintenance commands."""
    ctx.ensure_object(dict)
    ctx.obj["engine"] = make_engine(db_url) if db_url else engine


def _session_factory(ctx: click.Context):
    return make_sessionmaker(ctx.obj["engine"])


# -----------------------------------------
# migrate
# -----------------------------------------
@cli.group()
def migrate():
    """Schema migrations (ledger table: migrations)."""


@migrate.command("status")
@click.pass_context
def migrate_status(ctx: click.Context):
    runner = MigrationRunner(ctx.obj["engine"])
    for s in runner.status():
        mark = "x" if s.executed else " "
        when = f"  {s.executed_at:%Y-%m-%d %H:%M:%S}" if s.executed_at else ""
        click.echo(f"[{mark}] {s.id} {s.name}{when}")


@migrate.command("up")
@click.pass_context
def migrate_up(ctx: click.Context):
    try:
        applied = MigrationRunner(ctx.obj["engine"]).up()
    except SpiralError as exc:
        raise click.ClickException(exc.message) from exc
    if applied:
        click.echo(f"Applied: {', '.join(applied)}")
    else:
        click.echo("Nothing to apply.")


@migrate.command("down")
@click.pass_context
def migrate_down(ctx: click.Context):
    try:
        rolled_back = MigrationRunner(ctx.obj["engine"]).down()
    except SpiralError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo(f"Rolled back: {rolled_back}" if rolled_back else "Nothing to roll back.")


# -----------------------------------------
# artists
# -----------------------------------------
@cli.group("artists")
def artists_group():
    """Artist directory maintenance."""


@artists_group.command("merge")
@click.argument("canonical_id", type=int)
@click.argument("duplicate_id", type=int)
@click.pass_context
def merge(ctx: click.Context, canonical_id: int, duplicate_id: int):
    """Move everything from DUPLICATE_ID to CANONICAL_ID, then delete the duplicate."""
    with session_scope(_session_factory(ctx)) as db:
        try:
            artist = artists.merge_artists(db, canonical_id, duplicate_id)
        except SpiralError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"Merged {duplicate_id} into {artist.stage_name} ({artist.person_id}).")


# -----------------------------------------
# roles
# -----------------------------------------
@cli.group()
def roles():
    """Role assignments."""


@roles.command("grant")
@click.argument("username")
@click.argument("role")
@click.pass_context
def grant(ctx: click.Context, username: str, role: str):
    with session_scope(_session_factory(ctx)) as db:
        customer = db.query(Customer).filter(Customer.username == username).first()
        if not customer:
            raise click.ClickException(f"No customer with username {username}")
        try:
            rbac.assign_role(db, customer.person_id, role)
        except SpiralError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"Granted {role} to {username}.")


# -----------------------------------------
# serve
# -----------------------------------------
@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Restart on code changes (dev only).")
def serve(host: str, port: int, reload: bool):
    """Run the HTTP API with uvicorn."""
    uvicorn.run("spiral.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()

"""
Shadow-table rebuild: il modo per cambiare colonne o vincoli senza ALTER.

Si crea `_<nome>_shadow` con la forma nuova, si copiano (e trasformano) le
righe, si elimina la tabella vecchia e si rinomina la shadow al suo posto;
infine si ricreano gli indici. Tutto gira nella transazione della migrazione.

Attenzione: la tabella ricostruita non deve essere referenziata da FK di
altre tabelle (DROP + RENAME le lascerebbero puntare al vuoto).
"""
from typing import Callable, Sequence

import sqlalchemy as sa

from ..core.logging import get_logger

log = get_logger(__name__)


def rebuild_table(
    conn,
    new_table: sa.Table,
    columns: Sequence[str],
    where: Callable[[sa.Table], sa.ColumnElement] | None = None,
) -> int:
    """
    Ricostruisce `new_table.name` con la forma di `new_table`.

    `columns` sono le colonne copiate dalla tabella vecchia (stesso nome nella
    nuova); `where`, se presente, riceve la tabella vecchia riflessa e filtra
    le righe da portare. Ritorna il numero di righe copiate.
    """
    name = new_table.name
    shadow_name = f"_{name}_shadow"
    meta = new_table.metadata

    old = sa.Table(name, sa.MetaData(), autoload_with=conn)
    shadow = new_table.to_metadata(meta, name=shadow_name)
    # gli indici hanno nomi globali: li crea solo la tabella finale
    shadow.indexes.clear()

    try:
        shadow.create(conn)

        query = sa.select(*[old.c[col] for col in columns])
        if where is not None:
            query = query.where(where(old))
        copied = conn.execute(shadow.insert().from_select(list(columns), query)).rowcount

        old.drop(conn)
        conn.execute(sa.text(f'ALTER TABLE "{shadow_name}" RENAME TO "{name}"'))

        for index in new_table.indexes:
            index.create(conn)
    finally:
        meta.remove(shadow)

    log.info("Rebuilt table %s (%s rows copied)", name, copied)
    return copied

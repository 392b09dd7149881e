"""Elenco ordinato delle migrazioni note: l'ordine qui è l'ordine di esecuzione."""
from .versions import (
    v001_identity_schema,
    v002_catalog_schema,
    v003_cart,
    v004_orders_and_coupons,
    v005_staff_permissions,
    v006_cart_song_support,
    v007_order_item_song_support,
)

MIGRATIONS = [
    v001_identity_schema,
    v002_catalog_schema,
    v003_cart,
    v004_orders_and_coupons,
    v005_staff_permissions,
    v006_cart_song_support,
    v007_order_item_song_support,
]

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import require_permission
from ..models.catalog import Product
from ..schemas.catalog import ProductDetailOut, ProductIn, ProductOut, ProductUpdate, TrackOut
from ..services import catalog

router = APIRouter(prefix="/products", tags=["products"])


def _detail(product: Product) -> ProductDetailOut:
    base = ProductOut.model_validate(product).model_dump()
    tracks = [
        TrackOut(
            song_id=t.song_id,
            title=t.song.title,
            track_number=t.track_number,
            disc_number=t.disc_number,
            duration_seconds=t.song.duration_seconds,
        )
        for t in product.tracks
    ]
    return ProductDetailOut(**base, tracks=tracks)


@router.get("", response_model=list[ProductOut])
def list_products(
    genre: str | None = None,
    search: str | None = None,
    type: str | None = None,
    db: Session = Depends(get_db),
):
    return catalog.list_products(db, genre=genre, search=search, product_type=type)


@router.get("/genres", response_model=list[str])
def genres(db: Session = Depends(get_db)):
    return catalog.genres(db)


@router.get("/{product_id}", response_model=ProductDetailOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return _detail(catalog.get_product(db, product_id))


@router.post(
    "",
    response_model=ProductDetailOut,
    status_code=201,
    dependencies=[Depends(require_permission("products.create"))],
)
def create_product(payload: ProductIn, db: Session = Depends(get_db)):
    product = catalog.create_product(db, payload.model_dump())
    db.refresh(product)
    return _detail(product)


@router.patch(
    "/{product_id}",
    response_model=ProductOut,
    dependencies=[Depends(require_permission("products.update"))],
)
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    return catalog.update_product(db, product_id, payload.model_dump(exclude_unset=True))


@router.delete(
    "/{product_id}",
    status_code=204,
    dependencies=[Depends(require_permission("products.delete"))],
)
def delete_product(product_id: int, db: Session = Depends(get_db)):
    catalog.delete_product(db, product_id)

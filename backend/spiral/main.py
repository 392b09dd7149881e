# backend/spiral/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .core.errors import SpiralError
from .core.logging import get_logger
from .models import registry  # noqa: F401  (registra tutti i mapper)
from .routers import admin as admin_router
from .routers import artists as artists_router
from .routers import auth as auth_router
from .routers import cart as cart_router
from .routers import checkout as checkout_router
from .routers import products as products_router
from .routers import songs as songs_router

log = get_logger(__name__)

app = FastAPI(title="Spiral Records")

# --- API Routers ---
app.include_router(auth_router.router)
app.include_router(products_router.router)
app.include_router(songs_router.router)
app.include_router(artists_router.router)
app.include_router(cart_router.router)
app.include_router(checkout_router.router)
app.include_router(admin_router.router)


# --- Errori del core -> JSON con status coerente ---
@app.exception_handler(SpiralError)
async def spiral_error_handler(request: Request, exc: SpiralError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/ping")
def ping():
    return {"ok": True}

"""FastAPI marketplace API - serves the JSON API, uploaded images and the built web UI."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

import config
from marketplace.models.base import init_db

from web.api.admin_routes import router as admin_router
from web.api.auth_routes import router as auth_router
from web.api.category_routes import router as category_router
from web.api.like_routes import router as like_router
from web.api.manager_routes import router as manager_router
from web.api.order_routes import router as order_router
from web.api.product_routes import router as product_router
from web.api.restaurant_routes import router as restaurant_router
from web.api.review_routes import router as review_router
from web.api.search_routes import router as search_router
from web.api.settings_routes import router as settings_router
from web.api.upload_routes import router as upload_router
from web.api.utils import ok
from web.errors import register_exception_handlers
from web.session import SessionMiddleware

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("mnufood.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Database ready")
    yield


app = FastAPI(title="MnuFood Marketplace API", lifespan=lifespan)
register_exception_handlers(app)

# SPA fallback: serve index.html for non-API 404s so client-side routes work
_frontend_dist = Path(__file__).resolve().parent.parent / "frontend" / "dist"


class SPAFallbackMiddleware(BaseHTTPMiddleware):
    """Serve index.html for 404s on non-API paths (enables /login, /restaurants/3, etc.)."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        if response.status_code == 404 and not request.url.path.startswith(("/api", config.UPLOAD_URL_PREFIX)):
            index_path = _frontend_dist / "index.html"
            if index_path.exists():
                return FileResponse(str(index_path), media_type="text/html")
        return response


if _frontend_dist.exists():
    app.add_middleware(SPAFallbackMiddleware)

# Runs before the SPA fallback: /admin and /restaurant pages need a session of the right role
app.add_middleware(SessionMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(restaurant_router)
app.include_router(product_router)
app.include_router(category_router)
app.include_router(search_router)
app.include_router(like_router)
app.include_router(order_router)
app.include_router(review_router)
app.include_router(upload_router)
app.include_router(settings_router)
app.include_router(manager_router)
app.include_router(admin_router)


@app.get("/api/health")
async def health():
    return ok({"status": "ok"})


Path(config.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
app.mount(config.UPLOAD_URL_PREFIX, StaticFiles(directory=config.UPLOAD_DIR), name="uploads")

# Serve built frontend (SPA fallback handled by SPAFallbackMiddleware above)
if _frontend_dist.exists():
    app.mount("/", StaticFiles(directory=str(_frontend_dist), html=True), name="frontend")

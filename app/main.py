import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.analytics import router as analytics_router
from app.api.auth import router as auth_router
from app.api.books import router as books_router
from app.api.categories import router as categories_router
from app.api.charts import router as charts_router
from app.api.docs import router as docs_router
from app.api.external_contacts import router as external_contacts_router
from app.api.notifications import router as notifications_router
from app.api.projects import router as projects_router
from app.api.reviews import router as reviews_router
from app.api.system import router as system_router
from app.api.teams import router as teams_router
from app.api.users import router as users_router
from app.config import settings
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.makedirs(settings.avatar_upload_dir, exist_ok=True)
    if not settings.s3_endpoint_url:
        os.makedirs(settings.upload_dir, exist_ok=True)
    yield


app = FastAPI(title="DocMan API", version=settings.app_version, lifespan=lifespan)

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router):
    app.include_router(router, prefix="/api")


_include_api_router(auth_router)
_include_api_router(users_router)
_include_api_router(docs_router)
_include_api_router(categories_router)
_include_api_router(external_contacts_router)
_include_api_router(reviews_router)
_include_api_router(books_router)
_include_api_router(teams_router)
_include_api_router(projects_router)
_include_api_router(notifications_router)
_include_api_router(analytics_router)
_include_api_router(charts_router)
_include_api_router(system_router)

app.mount(
    settings.avatar_url_prefix,
    StaticFiles(directory=settings.avatar_upload_dir, check_dir=False),
    name="avatars",
)
app.mount(
    settings.upload_url_prefix,
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)

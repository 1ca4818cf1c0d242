from contextlib import asynccontextmanager
import logging
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles

from academy import models  # noqa: F401  registers tables on Base.metadata
from academy.config import settings
from academy.db import Base, SessionLocal, engine
from academy.route_logging import EndpointNameRoute
from academy.routers import attendance, auth, branches, calendar, coaches, dashboard, pages, sessions, students
from academy.services.bootstrap_service import run_bootstrap
from academy.session_middleware import SessionAuthMiddleware

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        run_bootstrap(db)
    finally:
        db.close()
    yield


app = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)
app.router.route_class = EndpointNameRoute
app.add_middleware(SessionAuthMiddleware)


@app.middleware('http')
async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.request_slow_ms:
        logging.getLogger('academy.request').info(
            'request_slow path=%s method=%s status_code=%s duration_ms=%.2f',
            request.url.path,
            request.method,
            response.status_code,
            duration_ms,
        )
    return response


@app.get('/health')
def healthcheck():
    return {'app': settings.app_name, 'status': 'ok'}


app.include_router(auth.router)
app.include_router(branches.router)
app.include_router(coaches.router)
app.include_router(students.router)
app.include_router(sessions.router)
app.include_router(attendance.router)
app.include_router(calendar.router)
app.include_router(dashboard.router)
app.include_router(pages.router)


_frontend_assets = Path('frontend') / 'dist' / 'assets'
if _frontend_assets.exists():
    app.mount('/assets', StaticFiles(directory=str(_frontend_assets)), name='frontend-assets')

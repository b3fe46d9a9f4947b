from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request

from coursetrack.app_state import get_context
from coursetrack.config import settings
from coursetrack.db import Base, SessionLocal, engine
from coursetrack.metrics import flush_metrics
from coursetrack.route_logging import EndpointNameRoute
from coursetrack.routers import activity_tracker, allocations, catalog, facilitators, notifications, students
from coursetrack.services.bootstrap_service import run_bootstrap

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)


def _embedded_worker_enabled() -> bool:
    return (settings.notification_worker_mode or '').strip().lower() == 'embedded'


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        run_bootstrap(db)
    finally:
        db.close()
    ctx = get_context()
    if _embedded_worker_enabled():
        await ctx.worker.start()
    if settings.enable_scheduler:
        ctx.scheduler.start()
    yield
    ctx.scheduler.shutdown()
    if _embedded_worker_enabled():
        await ctx.worker.stop()
    flush_metrics()


app = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)
app.router.route_class = EndpointNameRoute


@app.middleware('http')
async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.metrics_slow_ms:
        logging.getLogger('coursetrack.request').info(
            'request_slow path=%s method=%s status_code=%s duration_ms=%.2f',
            request.url.path,
            request.method,
            response.status_code,
            duration_ms,
        )
    return response

app.include_router(activity_tracker.router)
app.include_router(allocations.router)
app.include_router(catalog.router)
app.include_router(facilitators.router)
app.include_router(students.router)
app.include_router(notifications.router)


@app.get('/')
def root():
    return {'app': settings.app_name, 'status': 'ok'}


@app.get('/health')
def healthcheck():
    return {'status': 'ok'}

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from pythonjsonlogger.json import JsonFormatter

from .routes import router
from .config import CORS_ORIGIN, DB_SYNC
from .core import redis_startup, init_metrics, shutdown_connections
from .models import init_models
from .scheduler import scheduler
from .workers import worker_manager, schedule_jobs

# setup structured logging
logger = logging.getLogger('commentapp')
handler = logging.StreamHandler()
handler.setFormatter(JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
logger.addHandler(handler)
logger.setLevel(logging.INFO)

app = FastAPI(title="Comments API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[CORS_ORIGIN] if CORS_ORIGIN != '*' else ['*'],
    allow_credentials=True,
    allow_methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'],
    allow_headers=['Content-Type', 'Authorization'],
)

app.include_router(router)


@app.get('/healthz')
async def healthz():
    return {'status': 'ok'}


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    # malformed input is a plain 400 with a readable message
    errors = exc.errors()
    messages = []
    for err in errors:
        field = '.'.join(str(part) for part in err.get('loc', ()) if part != 'body')
        messages.append(f"{field}: {err.get('msg')}" if field else err.get('msg'))
    return JSONResponse({'detail': '; '.join(messages) or 'Invalid request'}, status_code=400)


@app.middleware('http')
async def log_requests(request: Request, call_next):
    logger.info({'msg': 'request_start', 'method': request.method, 'path': request.url.path})
    response = await call_next(request)
    logger.info({'msg': 'request_end', 'method': request.method, 'path': request.url.path,
                 'status': response.status_code})
    return response


@app.on_event("startup")
async def startup():
    # Best-effort init, don't block app from starting if a dependency fails
    try:
        await redis_startup()
    except Exception as e:
        logger.warning({'msg': 'redis_start_failed', 'error': str(e)})
    try:
        init_metrics()
    except Exception as e:
        logger.warning({'msg': 'metrics_init_failed', 'error': str(e)})
    if DB_SYNC:
        await init_models()

    await worker_manager.start_all()
    schedule_jobs(scheduler)


@app.on_event("shutdown")
async def shutdown():
    await scheduler.shutdown()
    await worker_manager.stop_all()
    await shutdown_connections()

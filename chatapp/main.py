import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pythonjsonlogger import jsonlogger
from sqlalchemy.exc import SQLAlchemyError

from .core import METRICS_PORT, Services, build_services, redis_startup, shutdown_connections
from .errors import DependencyError
from .metrics import init_metrics
from .routes import router

# setup structured logging
logger = logging.getLogger('chatapp')
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


def create_app(services: Services = None) -> FastAPI:
    services = services or build_services()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Best-effort init, don't block app from starting if a dependency fails
        try:
            services.rate_limiter.redis = await redis_startup()
        except Exception as e:
            logger.warning({'msg': 'redis_start_failed', 'error': str(e)})
        try:
            init_metrics(METRICS_PORT)
        except Exception as e:
            logger.warning({'msg': 'metrics_init_failed', 'error': str(e)})
        yield
        await shutdown_connections(services)

    app = FastAPI(title="Chat API", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={'detail': jsonable_encoder(exc.errors())})

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error({'msg': 'storage_failure', 'path': request.url.path, 'error': str(exc)})
        return JSONResponse(status_code=500, content={'detail': DependencyError.detail})

    @app.middleware('http')
    async def log_requests(request: Request, call_next):
        logger.info({'msg': 'request_start', 'method': request.method, 'path': request.url.path})
        response = await call_next(request)
        logger.info({'msg': 'request_end', 'status': response.status_code})
        return response

    app.include_router(router, prefix="/api")
    app.mount(
        services.storage.public_prefix,
        StaticFiles(directory=services.storage.upload_dir),
        name='uploads',
    )

    @app.get('/healthz')
    async def healthz():
        return {'status': 'ok'}

    return app


app = create_app()

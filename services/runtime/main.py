"""
Function Runtime - HTTP host for a single user function

Receives HTTP requests, turns each into an (event, context) invocation of
the user handler, and serializes the result back into the response.
"""

import logging
from typing import Any, Callable, Optional

from fastapi import FastAPI
from prometheus_client import CollectorRegistry

from .api.routes import router
from .config import RuntimeConfig, config
from .core.logging_config import setup_logging
from .exceptions import register_exception_handlers
from .lifecycle import attach_components, build_components, manage_lifespan
from .middleware import request_id_middleware

# Logger setup
setup_logging()
logger = logging.getLogger("runtime.main")


def create_app(
    runtime_config: Optional[RuntimeConfig] = None,
    registry: Optional[CollectorRegistry] = None,
    exit_process: Optional[Callable[[int], Any]] = None,
) -> FastAPI:
    runtime_config = runtime_config or config

    app = FastAPI(title="Function Runtime", version="1.0.0", lifespan=manage_lifespan)
    attach_components(app, build_components(runtime_config, registry, exit_process))

    app.middleware("http")(request_id_middleware)
    register_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=config.BIND_HOST, port=config.FUNC_PORT, log_config=None)


if __name__ == "__main__":
    run()

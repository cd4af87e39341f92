"""
Where: services/runtime/lifecycle.py
What: Runtime startup/shutdown orchestration for shared components.
Why: Keep main.py focused on app assembly while preserving lifecycle behavior.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional

from fastapi import FastAPI
from prometheus_client import CollectorRegistry

from .config import RuntimeConfig
from .core.event_builder import EventBuilder
from .core.finalizer import ResponseFinalizer
from .models.params import InvocationParams
from .services.dependency_resolver import DependencyResolver
from .services.engine import InvocationEngine
from .services.metrics import FunctionMetrics
from .services.processor import FunctionRequestProcessor

logger = logging.getLogger("runtime.main")


@dataclass
class RuntimeComponents:
    params: InvocationParams
    metrics: FunctionMetrics
    resolver: DependencyResolver
    engine: InvocationEngine
    processor: FunctionRequestProcessor


def build_components(
    runtime_config: RuntimeConfig,
    registry: Optional[CollectorRegistry] = None,
    exit_process: Optional[Callable[[int], Any]] = None,
) -> RuntimeComponents:
    """Construct the process-wide components once, at startup."""
    params = runtime_config.invocation_params()
    metrics = FunctionMetrics(registry)
    resolver = DependencyResolver.from_manifest(params.paths, params.binding_name)
    engine = InvocationEngine(
        params,
        resolver,
        max_workers=runtime_config.INVOKE_WORKERS,
        exit_process=exit_process,
    )
    processor = FunctionRequestProcessor(
        params=params,
        event_builder=EventBuilder(params),
        engine=engine,
        finalizer=ResponseFinalizer(metrics),
        metrics=metrics,
    )
    return RuntimeComponents(params, metrics, resolver, engine, processor)


def attach_components(app: FastAPI, components: RuntimeComponents) -> None:
    # Store in app.state for DI
    app.state.components = components
    app.state.invocation_params = components.params
    app.state.metrics = components.metrics
    app.state.processor = components.processor


@asynccontextmanager
async def manage_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    components: RuntimeComponents = app.state.components
    params = components.params

    components.resolver.install()
    logger.info(
        "Function runtime ready: module=%s handler=%s timeout=%ss dependencies=%d",
        params.paths.module,
        params.function.handler,
        params.function.timeout,
        len(components.resolver.dependencies),
    )

    try:
        yield
    finally:
        components.resolver.uninstall()
        components.engine.shutdown()
        logger.info("Function runtime shutting down.")

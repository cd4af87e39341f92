"""
Invocation engine.

Loads the user module fresh for every request, hands it the reserved
binding, calls the handler with (event, context) and bounds the whole run
by the configured wall-clock timeout.

Handlers run on a worker thread. Python offers no way to stop a running
thread, so a timeout cannot be recovered from: the caller answers 408 and
then terminates the process (see ``terminate``).
"""

import asyncio
import contextvars
import inspect
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from services.runtime.core.exceptions import HandlerLoadError, InvocationTimeoutError
from services.runtime.models.event import Context, Event
from services.runtime.models.params import InvocationParams
from services.runtime.models.result import (
    AsyncError,
    InvocationOutcome,
    Success,
    SyncError,
    Timeout,
)
from services.runtime.services.dependency_resolver import DependencyResolver

logger = logging.getLogger("runtime.engine")


class InvocationBinding:
    """
    The value user code receives when importing the reserved name.

    Calling it with a handler, or with an object exposing the configured
    handler attribute, runs that handler once for the current request.
    """

    def __init__(self, handler_name: str, event: Event, context: Context):
        self.handler_name = handler_name
        self.event = event
        self.context = context
        self.invoked = False
        self.result: Any = None

    def resolve_handler(self, handler: Any) -> Callable:
        if callable(handler):
            return handler
        func = getattr(handler, self.handler_name, None) if self.handler_name else None
        if not callable(func):
            raise HandlerLoadError(f"Unable to load {handler!r}")
        return func

    def __call__(self, handler: Any) -> Any:
        if self.invoked:
            logger.warning("Handler already invoked for this request, ignoring second registration")
            return self.result
        func = self.resolve_handler(handler)
        self.invoked = True
        self.result = func(self.event, self.context)
        return self.result


def _mark_started(started: asyncio.Future, at: float) -> None:
    if not started.done():
        started.set_result(at)


class InvocationEngine:
    def __init__(
        self,
        params: InvocationParams,
        resolver: DependencyResolver,
        max_workers: int = 8,
        exit_process: Optional[Callable[[int], Any]] = None,
    ):
        self.params = params
        self.resolver = resolver
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="function-invoke"
        )
        self.exit_process = exit_process or os._exit

    @property
    def timeout(self) -> float:
        return self.params.function.timeout

    def load_and_call(self, event: Event, context: Context) -> Any:
        """
        Synchronous part of an invocation: load the module, trigger the handler.

        Returns whatever the handler returned, possibly an awaitable.
        """
        binding = InvocationBinding(self.params.function.handler, event, context)
        scope = self.resolver.scope(binding)
        module = self.resolver.loader.load(
            self.params.module_name, self.params.paths.module, scope
        )
        # The module may already have called the binding while executing.
        if not binding.invoked:
            scope(self.params.binding_name)(module)
        return binding.result

    async def invoke(self, event: Event, context: Context) -> InvocationOutcome:
        loop = asyncio.get_running_loop()
        started = loop.create_future()
        run_in_context = contextvars.copy_context().run

        def call() -> Any:
            loop.call_soon_threadsafe(_mark_started, started, loop.time())
            return run_in_context(self.load_and_call, event, context)

        future = loop.run_in_executor(self.executor, call)
        # The budget starts once a worker picks the call up, not while queued.
        await asyncio.wait({started, future}, return_when=asyncio.FIRST_COMPLETED)
        deadline = (started.result() if started.done() else loop.time()) + self.timeout

        # A TimeoutError raised by the handler stays on the future.
        done, _ = await asyncio.wait({future}, timeout=max(deadline - loop.time(), 0))
        if future not in done:
            return Timeout(InvocationTimeoutError(self.timeout))
        try:
            value = future.result()
        except Exception as e:
            return SyncError(e)

        if inspect.isawaitable(value):
            task = asyncio.ensure_future(value)
            done, _ = await asyncio.wait({task}, timeout=max(deadline - loop.time(), 0))
            if task not in done:
                task.cancel()
                return Timeout(InvocationTimeoutError(self.timeout))
            try:
                value = task.result()
            except Exception as e:
                return AsyncError(e)

        return Success(value)

    def terminate(self) -> None:
        """Exit the process; the timed out handler is still running on its thread."""
        for handler in logging.getLogger().handlers:
            handler.flush()
        self.exit_process(1)

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)

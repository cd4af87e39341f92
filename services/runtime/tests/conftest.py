import textwrap

import pytest
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from services.runtime.config import RuntimeConfig
from services.runtime.main import create_app

MODULE_NAME = "handler_mod"


@pytest.fixture
def function_root(tmp_path):
    root = tmp_path / "function"
    root.mkdir()
    return root


@pytest.fixture
def write_file(function_root):
    """Write a file below the function root and return its path."""

    def _write(relative: str, source: str):
        path = function_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_function(write_file):
    """Write the user module itself."""

    def _write(source: str):
        return write_file(f"{MODULE_NAME}.py", source)

    return _write


@pytest.fixture
def make_config(function_root):
    def _make(**overrides) -> RuntimeConfig:
        values = dict(
            MOD_NAME=MODULE_NAME,
            FUNC_HANDLER="handler",
            FUNC_TIMEOUT=2.0,
            FUNC_RUNTIME="python3.11",
            FUNC_MEMORY_LIMIT="128Mi",
            FUNCTION_ROOT=str(function_root),
            INVOKE_WORKERS=2,
        )
        values.update(overrides)
        return RuntimeConfig(_env_file=None, **values)

    return _make


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def exit_calls():
    """Exit codes passed to the injected process terminator."""
    return []


@pytest.fixture
def make_client(make_config, registry, exit_calls):
    clients = []

    def _make(**overrides) -> TestClient:
        app = create_app(make_config(**overrides), registry=registry, exit_process=exit_calls.append)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def metric_value(registry):
    """Read a sample for the ``handler_mod-<METHOD>`` label."""

    def _value(name: str, method: str = "POST"):
        return registry.get_sample_value(name, {"method": f"{MODULE_NAME}-{method}"})

    return _value

import importlib
import logging
import sys

import pytest

from services.runtime.core.exceptions import DependencyResolutionError
from services.runtime.services.dependency_resolver import (
    DependencyResolver,
    PrivateDependencyFinder,
    normalize_name,
    read_dependency_manifest,
)


@pytest.fixture
def paths(make_config):
    return make_config().invocation_params().paths


@pytest.fixture
def clean_modules():
    """Drop modules a test loaded into sys.modules."""
    names = []
    yield names
    for name in list(sys.modules):
        if name.partition(".")[0] in names:
            del sys.modules[name]


def _resolver(paths, dependencies=(), binding=None):
    resolver = DependencyResolver(paths, dependencies, "kubeless")
    return resolver, resolver.scope(binding)


def test_normalize_name():
    assert normalize_name("Flask-Cors") == "flask_cors"
    assert normalize_name("zope.interface") == "zope_interface"
    assert normalize_name("ruamel__yaml") == "ruamel_yaml"


def test_read_manifest(write_file, paths):
    write_file(
        "requirements.txt",
        """
        # pinned
        requests==2.31.0
        Flask-Cors>=4  # cors
        -r other.txt
        --index-url https://example.invalid/simple

        numpy[extra]; python_version > "3.8"
        """,
    )

    assert read_dependency_manifest(paths.manifest) == frozenset(
        {"requests", "flask_cors", "numpy"}
    )


def test_read_manifest_missing_is_empty(paths):
    assert read_dependency_manifest(paths.manifest) == frozenset()


def test_read_manifest_undecodable_is_empty(function_root, paths):
    (function_root / "requirements.txt").write_bytes(b"\xff\xfe\x00bad")

    assert read_dependency_manifest(paths.manifest) == frozenset()


def test_reserved_name_returns_binding(paths):
    binding = object()
    _, scope = _resolver(paths, binding=binding)

    assert scope("kubeless") is binding


def test_reserved_name_is_not_matched_inside_relative_import(write_file, paths):
    write_file("kubeless.py", "LOCAL = True\n")
    binding = object()
    _, scope = _resolver(paths, binding=binding)

    module = scope("kubeless", {"__file__": paths.module}, None, ("LOCAL",), 1)

    assert module is not binding
    assert module.LOCAL is True


def test_declared_dependency_loads_from_private_directory(write_file, paths, clean_modules):
    clean_modules.append("privdep_alpha")
    write_file("site-packages/privdep_alpha/__init__.py", "ORIGIN = 'private'\n")
    write_file("site-packages/privdep_alpha/sub.py", "VALUE = 7\n")
    resolver, scope = _resolver(paths, ["privdep-alpha"])

    module = scope("privdep_alpha")
    sub = scope("privdep_alpha.sub", None, None, ("VALUE",), 0)

    assert module.ORIGIN == "private"
    assert module.__file__.startswith(paths.libs)
    assert sub.VALUE == 7
    # cached for the process
    assert scope("privdep_alpha") is module


def test_missing_declared_dependency_raises(paths):
    _, scope = _resolver(paths, ["privdep_missing"])

    with pytest.raises(DependencyResolutionError) as exc_info:
        scope("privdep_missing")

    assert isinstance(exc_info.value, ImportError)
    assert exc_info.value.name == "privdep_missing"


def test_host_module_wins_over_private_copy(write_file, paths):
    write_file("site-packages/json/__init__.py", "FAKE = True\n")
    _, scope = _resolver(paths, ["json"])

    module = scope("json")

    assert module is sys.modules["json"]
    assert not hasattr(module, "FAKE")


def test_host_conflicts_reported_at_install(paths, caplog):
    resolver, _ = _resolver(paths, ["json", "privdep_not_loaded"])

    with caplog.at_level(logging.WARNING, logger="runtime.resolver"):
        resolver.install()
    resolver.uninstall()

    assert resolver.host_conflicts() == ["json"]
    messages = [r.getMessage() for r in caplog.records]
    assert any("json is already loaded by the host" in m for m in messages)
    assert not any("privdep_not_loaded" in m for m in messages)


def test_undeclared_import_uses_host(paths):
    import collections

    _, scope = _resolver(paths)

    assert scope("collections") is collections


def test_undeclared_private_module_is_not_visible(write_file, paths, clean_modules):
    clean_modules.append("privdep_hidden")
    write_file("site-packages/privdep_hidden.py", "X = 1\n")
    resolver, scope = _resolver(paths)

    resolver.install()
    try:
        with pytest.raises(ModuleNotFoundError):
            scope("privdep_hidden")
    finally:
        resolver.uninstall()


def test_host_imports_do_not_fall_through_to_private_directory(
    write_file, paths, clean_modules
):
    clean_modules.append("privdep_host_miss")
    write_file("site-packages/privdep_host_miss.py", "X = 1\n")
    resolver, _ = _resolver(paths)

    resolver.install()
    try:
        with pytest.raises(ModuleNotFoundError):
            importlib.import_module("privdep_host_miss")
    finally:
        resolver.uninstall()


def test_relative_import_of_sibling_file(write_file, paths):
    write_file("helper.py", "def greet(name):\n    return f'hello {name}'\n")
    _, scope = _resolver(paths)

    module = scope("helper", {"__file__": paths.module}, None, ("greet",), 1)

    assert module.greet("x") == "hello x"


def test_relative_from_dot_import(write_file, paths):
    write_file("helper.py", "NAME = 'helper'\n")
    _, scope = _resolver(paths)

    package = scope("", {"__file__": paths.module}, None, ("helper",), 1)

    assert package.helper.NAME == "helper"


def test_relative_import_of_nested_package(write_file, paths):
    write_file("lib/__init__.py", "from .util import double\n")
    write_file("lib/util.py", "def double(x):\n    return 2 * x\n")
    _, scope = _resolver(paths)

    module = scope("lib", {"__file__": paths.module}, None, ("double",), 1)
    util = scope("lib.util", {"__file__": paths.module}, None, ("double",), 1)

    assert module.double(2) == 4
    assert util is module.util


def test_sibling_modules_are_cached_per_scope(write_file, paths):
    write_file("state.py", "ITEMS = []\n")
    resolver, scope = _resolver(paths)
    importer = {"__file__": paths.module}

    first = scope("state", importer, None, ("ITEMS",), 1)
    again = scope("state", importer, None, ("ITEMS",), 1)
    other_request = resolver.scope(None)("state", importer, None, ("ITEMS",), 1)

    assert first is again
    assert other_request is not first


def test_missing_relative_module_raises(paths):
    _, scope = _resolver(paths)

    with pytest.raises(ModuleNotFoundError):
        scope("nothing_here", {"__file__": paths.module}, None, ("x",), 1)


def test_finder_install_and_uninstall(paths):
    resolver, _ = _resolver(paths)

    resolver.install()
    resolver.install()
    try:
        finders = [f for f in sys.meta_path if isinstance(f, PrivateDependencyFinder)]
        assert finders == [resolver._finder]
        assert sys.meta_path[-1] is resolver._finder
    finally:
        resolver.uninstall()

    assert resolver._finder not in sys.meta_path


def test_finder_serves_transitive_dependency(write_file, paths, clean_modules):
    clean_modules.extend(["privdep_outer", "privdep_inner"])
    write_file("site-packages/privdep_inner.py", "VALUE = 'inner'\n")
    write_file("site-packages/privdep_outer.py", "import privdep_inner\nVALUE = privdep_inner.VALUE\n")
    resolver, scope = _resolver(paths, ["privdep_outer"])

    resolver.install()
    try:
        module = scope("privdep_outer")
    finally:
        resolver.uninstall()

    assert module.VALUE == "inner"


def test_finder_serves_call_time_import_of_dependency(write_file, paths, clean_modules):
    clean_modules.extend(["privdep_lazy_outer", "privdep_lazy_inner"])
    write_file("site-packages/privdep_lazy_inner.py", "VALUE = 'lazy'\n")
    write_file(
        "site-packages/privdep_lazy_outer.py",
        "def load():\n    import privdep_lazy_inner\n    return privdep_lazy_inner.VALUE\n",
    )
    resolver, scope = _resolver(paths, ["privdep_lazy_outer"])

    resolver.install()
    try:
        assert scope("privdep_lazy_outer").load() == "lazy"
    finally:
        resolver.uninstall()

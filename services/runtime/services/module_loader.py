"""
User module loader.

Evaluates the user's source files into fresh module objects whose
``__builtins__`` carry an injected ``__import__``. Nothing is registered in
``sys.modules``: every invocation builds its own module instances.
"""

import builtins
import functools
import logging
import os
import types
from typing import Callable, Optional

logger = logging.getLogger("runtime.module_loader")

ImportFunc = Callable[..., types.ModuleType]


@functools.lru_cache(maxsize=64)
def _compile_source(path: str, mtime_ns: int, size: int) -> types.CodeType:
    with open(path, "rb") as f:
        source = f.read()
    return compile(source, path, "exec", dont_inherit=True)


def compile_file(path: str) -> types.CodeType:
    """Compile a source file, reusing the code object while the file is unchanged."""
    stat = os.stat(path)
    return _compile_source(path, stat.st_mtime_ns, stat.st_size)


class FunctionModuleLoader:
    """Builds isolated module namespaces for user code."""

    def __init__(self, root: str):
        self.root = root

    def new_module(
        self,
        name: str,
        path: Optional[str],
        import_func: ImportFunc,
        package_path: Optional[str] = None,
    ) -> types.ModuleType:
        """
        Create an empty module with the runtime bindings injected.

        Bindings: ``__file__``, ``__dirname__`` (function root),
        ``__builtins__`` (a copy with the custom ``__import__``) and, for
        packages, ``__path__``.
        """
        module = types.ModuleType(name)
        module.__file__ = path
        module.__package__ = ""
        module.__dirname__ = self.root
        module.__builtins__ = dict(builtins.__dict__, __import__=import_func)
        if package_path is not None:
            module.__path__ = [package_path]
        return module

    def exec_module(self, module: types.ModuleType) -> types.ModuleType:
        if module.__file__:
            exec(compile_file(module.__file__), module.__dict__)
        return module

    def load(self, name: str, path: str, import_func: ImportFunc) -> types.ModuleType:
        """Evaluate ``path`` into a brand new module."""
        if not os.path.isfile(path):
            raise ModuleNotFoundError(f"Function module not found: {path}", name=name)
        logger.debug("Loading function module %s from %s", name, path)
        return self.exec_module(self.new_module(name, path, import_func))

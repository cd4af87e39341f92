"""
Dependency resolution for user code.

Every ``import`` executed by the user module goes through an ImportScope,
which picks the first matching tier:

1. the reserved binding name -> the invocation binding of this request
2. a declared dependency -> loaded from the function's private directory
3. a relative import -> sibling files next to the importing module
4. anything else -> the host's regular import system
"""

import builtins
import importlib.machinery
import importlib.util
import logging
import os
import re
import sys
import threading
import types
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from services.runtime.core.exceptions import DependencyResolutionError
from services.runtime.models.params import FunctionPaths
from services.runtime.services.module_loader import FunctionModuleLoader

logger = logging.getLogger("runtime.resolver")

_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def normalize_name(name: str) -> str:
    """Normalize a project or import name for comparison."""
    return re.sub(r"[-_.]+", "_", name).lower()


def read_dependency_manifest(path: str) -> FrozenSet[str]:
    """
    Read declared dependency names from a requirements file.

    Comments, blank lines and pip options are skipped. A missing or
    unreadable manifest yields an empty set.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except FileNotFoundError:
        logger.info(f"Dependency manifest not found at {path}")
        return frozenset()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Unable to read dependency manifest {path}: {e}")
        return frozenset()

    names = set()
    for line in lines:
        line = line.split("#", 1)[0].strip()
        if not line or line.startswith("-"):
            continue
        match = _REQUIREMENT_NAME.match(line)
        if match:
            names.add(normalize_name(match.group(1)))

    logger.info(f"Loaded {len(names)} declared dependencies from {path}")
    return frozenset(names)


_IMPORT_MACHINERY = ("<frozen importlib", os.path.dirname(importlib.__file__) + os.sep)


def _importer_filename() -> Optional[str]:
    """Source file of the code that triggered the current import."""
    frame = sys._getframe(2)
    while frame is not None:
        filename = frame.f_code.co_filename
        if not filename.startswith(_IMPORT_MACHINERY):
            return filename
        frame = frame.f_back
    return None


class PrivateDependencyFinder:
    """
    Meta path finder that serves top-level modules from the private directory.

    Appended after the host's own finders, and only answers imports issued
    by code that itself lives in the private directory: the transitive
    dependencies of declared ones. Host code and user code never see it.
    """

    def __init__(self, libs_path: str):
        self.libs_path = libs_path
        self._prefix = os.path.join(libs_path, "")

    def find_spec(self, fullname, path=None, target=None):
        if path is not None:
            return None
        importer = _importer_filename()
        if not importer or not importer.startswith(self._prefix):
            return None
        return importlib.machinery.PathFinder.find_spec(fullname, [self.libs_path])


class DependencyResolver:
    """Process-wide resolver state: declared dependencies and private paths."""

    def __init__(
        self,
        paths: FunctionPaths,
        dependencies: Iterable[str],
        binding_name: str,
        loader: Optional[FunctionModuleLoader] = None,
    ):
        self.paths = paths
        self.dependencies = frozenset(normalize_name(d) for d in dependencies)
        self.binding_name = binding_name
        self.loader = loader or FunctionModuleLoader(paths.root)
        self._finder = PrivateDependencyFinder(paths.libs)
        self._lock = threading.RLock()

    @classmethod
    def from_manifest(
        cls, paths: FunctionPaths, binding_name: str, loader: Optional[FunctionModuleLoader] = None
    ) -> "DependencyResolver":
        return cls(paths, read_dependency_manifest(paths.manifest), binding_name, loader)

    def install(self) -> None:
        """Register the private directory finder on sys.meta_path."""
        if self._finder not in sys.meta_path:
            sys.meta_path.append(self._finder)
        self.report_host_conflicts()

    def host_conflicts(self) -> List[str]:
        """Declared dependencies already imported by the host under the same name."""
        conflicts = []
        for name, module in list(sys.modules.items()):
            if "." in name or module is None:
                continue
            if normalize_name(name) in self.dependencies and not self._is_private(module):
                conflicts.append(name)
        return sorted(conflicts)

    def report_host_conflicts(self) -> None:
        for name in self.host_conflicts():
            logger.warning(
                f"Declared dependency {name} is already loaded by the host; "
                f"the host copy will be used instead of the one in {self.paths.libs}",
                extra={"dependency": name},
            )

    def uninstall(self) -> None:
        if self._finder in sys.meta_path:
            sys.meta_path.remove(self._finder)

    def is_dependency(self, name: str) -> bool:
        return normalize_name(name.partition(".")[0]) in self.dependencies

    def _is_private(self, module: types.ModuleType) -> bool:
        origin = getattr(module, "__file__", None) or ""
        return os.path.abspath(origin).startswith(self.paths.libs + os.sep)

    def load_dependency(self, top: str) -> types.ModuleType:
        """
        Load a declared top-level dependency from the private directory.

        Loaded dependencies are cached in sys.modules for the life of the
        process. A module the host already imported under the same name wins.
        """
        with self._lock:
            existing = sys.modules.get(top)
            if existing is not None:
                if not self._is_private(existing):
                    logger.debug(f"Dependency {top} is already provided by the host; using the host module")
                return existing

            spec = importlib.machinery.PathFinder.find_spec(top, [self.paths.libs])
            if spec is None or spec.loader is None:
                raise DependencyResolutionError(top, self.paths.libs)

            module = importlib.util.module_from_spec(spec)
            sys.modules[top] = module
            try:
                spec.loader.exec_module(module)
            except BaseException:
                sys.modules.pop(top, None)
                raise

            logger.debug(f"Loaded dependency {top} from {spec.origin}")
            return module

    def scope(self, binding: Any) -> "ImportScope":
        """Create the import function for one invocation."""
        return ImportScope(self, binding)


class ImportScope:
    """
    The ``__import__`` replacement injected into one invocation's modules.

    Sibling modules loaded through relative imports are cached per scope,
    so a file imported twice in the same invocation is evaluated once.
    """

    def __init__(self, resolver: DependencyResolver, binding: Any):
        self.resolver = resolver
        self.binding = binding
        self._local: Dict[str, types.ModuleType] = {}

    def __call__(self, name, globals=None, locals=None, fromlist=(), level=0):
        if level == 0:
            if name == self.resolver.binding_name:
                return self.binding
            if self.resolver.is_dependency(name):
                # Once the private copy sits in sys.modules the regular
                # machinery resolves submodules through its __path__.
                self.resolver.load_dependency(name.partition(".")[0])
            return builtins.__import__(name, globals, locals, fromlist, 0)
        return self._import_local(name, globals, fromlist or (), level)

    # Relative imports

    def _base_dir(self, globals: Optional[dict], level: int) -> str:
        importer = (globals or {}).get("__file__")
        base = os.path.dirname(importer) if importer else self.resolver.paths.root
        for _ in range(level - 1):
            base = os.path.dirname(base)
        return base

    def _import_local(self, name: str, globals: Optional[dict], fromlist, level: int):
        base = self._base_dir(globals, level)
        if name:
            module = self._load_dotted(name, base)
        else:
            module = self._directory_package(base)

        package_path = getattr(module, "__path__", None)
        if package_path:
            for item in fromlist:
                if item != "*" and not hasattr(module, item):
                    child = self._find_local(item, package_path[0])
                    if child is not None:
                        setattr(module, item, child)
        return module

    def _directory_package(self, directory: str) -> types.ModuleType:
        key = directory + os.sep
        module = self._local.get(key)
        if module is None:
            module = self.resolver.loader.new_module(
                os.path.basename(directory), None, self, package_path=directory
            )
            self._local[key] = module
        return module

    def _load_dotted(self, name: str, base: str) -> types.ModuleType:
        parent = None
        directory = base
        for part in name.split("."):
            module = self._find_local(part, directory)
            if module is None:
                raise ModuleNotFoundError(f"No module named {name!r} in {base}", name=name)
            if parent is not None:
                setattr(parent, part, module)
            parent = module
            directory = os.path.join(directory, part)
        return module

    def _find_local(self, part: str, directory: str) -> Optional[types.ModuleType]:
        file_path = os.path.join(directory, f"{part}.py")
        package_dir = os.path.join(directory, part)
        init_path = os.path.join(package_dir, "__init__.py")

        if os.path.isfile(file_path):
            key, package_path = file_path, None
        elif os.path.isfile(init_path):
            key, package_path = init_path, package_dir
        else:
            return None

        module = self._local.get(key)
        if module is not None:
            return module

        loader = self.resolver.loader
        module = loader.new_module(part, key, self, package_path=package_path)
        # Registered before execution so circular sibling imports terminate.
        self._local[key] = module
        try:
            loader.exec_module(module)
        except BaseException:
            self._local.pop(key, None)
            raise
        return module

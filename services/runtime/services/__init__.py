"""
Services package.

Provides the invocation pipeline: dependency resolution, module loading,
execution and metrics.
"""

from .dependency_resolver import DependencyResolver, read_dependency_manifest
from .engine import InvocationBinding, InvocationEngine
from .metrics import FunctionMetrics, InvocationTimer
from .module_loader import FunctionModuleLoader

__all__ = [
    "DependencyResolver",
    "read_dependency_manifest",
    "InvocationBinding",
    "InvocationEngine",
    "FunctionMetrics",
    "InvocationTimer",
    "FunctionModuleLoader",
]

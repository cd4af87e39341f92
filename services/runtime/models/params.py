"""
Invocation parameter models.

Process-wide, read-only records built once from RuntimeConfig at startup.
"""

import os

from pydantic import BaseModel, ConfigDict, Field


class FunctionParams(BaseModel):
    """Settings describing the user function itself."""

    model_config = ConfigDict(frozen=True)

    handler: str
    timeout: float = Field(gt=0)
    port: int = 8080
    runtime: str = ""
    memory_limit: str = ""


class FunctionPaths(BaseModel):
    """Filesystem locations of the user function and its private dependencies."""

    model_config = ConfigDict(frozen=True)

    root: str
    module: str
    libs: str
    manifest: str

    @classmethod
    def from_root(
        cls, root: str, module_name: str, libs_dir: str, manifest_name: str
    ) -> "FunctionPaths":
        root = os.path.abspath(root)
        return cls(
            root=root,
            module=os.path.join(root, f"{module_name}.py"),
            libs=os.path.join(root, libs_dir),
            manifest=os.path.join(root, manifest_name),
        )


class InvocationParams(BaseModel):
    """
    Function identity and limits shared by every invocation.

    Constructed once at startup and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    module_name: str
    request_mb_limit: float = Field(gt=0)
    binding_name: str = "kubeless"
    function: FunctionParams
    paths: FunctionPaths

    @property
    def request_byte_limit(self) -> int:
        return int(self.request_mb_limit * 1024 * 1024)

"""
Function runtime configuration definition.

Loads configuration from environment variables and provides a Pydantic model.
Uses pydantic-settings for type safety and defaults.
"""

import sys
from pydantic import Field
from services.common.core.config import BaseAppConfig

from .models.params import FunctionParams, FunctionPaths, InvocationParams


class RuntimeConfig(BaseAppConfig):
    """
    Configuration management for the function runtime.
    """

    # Function identity
    MOD_NAME: str = Field(default="", description="User module name (file stem)")
    FUNC_HANDLER: str = Field(default="", description="Handler attribute name")
    FUNC_RUNTIME: str = Field(default="", description="Runtime label passed to the handler")
    FUNC_MEMORY_LIMIT: str = Field(default="", description="Memory limit label")

    # Limits
    FUNC_TIMEOUT: float = Field(default=180.0, gt=0, description="Invocation timeout (seconds)")
    REQ_MB_LIMIT: float = Field(default=1.0, gt=0, description="Request body limit (MB)")
    INVOKE_WORKERS: int = Field(default=8, ge=1, description="Handler thread pool size")

    # Server settings
    FUNC_PORT: int = Field(default=8080, description="Listen port")
    BIND_HOST: str = Field(default="0.0.0.0", description="Listen address")

    # Path settings
    FUNCTION_ROOT: str = Field(default="/kubeless", description="Directory of the user module")
    DEPENDENCIES_MANIFEST: str = Field(
        default="requirements.txt", description="Dependency manifest file name"
    )
    DEPENDENCIES_DIR: str = Field(
        default="site-packages", description="Private dependency directory name"
    )

    # Reserved import through which the module hands back its handler
    RUNTIME_BINDING_NAME: str = Field(default="kubeless", description="Reserved import name")

    def invocation_params(self) -> InvocationParams:
        return InvocationParams(
            module_name=self.MOD_NAME,
            request_mb_limit=self.REQ_MB_LIMIT,
            binding_name=self.RUNTIME_BINDING_NAME,
            function=FunctionParams(
                handler=self.FUNC_HANDLER,
                timeout=self.FUNC_TIMEOUT,
                port=self.FUNC_PORT,
                runtime=self.FUNC_RUNTIME,
                memory_limit=self.FUNC_MEMORY_LIMIT,
            ),
            paths=FunctionPaths.from_root(
                self.FUNCTION_ROOT,
                self.MOD_NAME,
                self.DEPENDENCIES_DIR,
                self.DEPENDENCIES_MANIFEST,
            ),
        )


# Load config as a singleton.
# pydantic-settings reads environment variables during instantiation.
try:
    config = RuntimeConfig()
except Exception as e:
    sys.stderr.write(f"Failed to load configuration: {e}\n")
    raise

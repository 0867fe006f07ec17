"""Generic per-resource operation executor interface."""

import importlib
from typing import Any, Dict, List, Protocol

from toolbridge.models.context import HostContext


class OperationExecutor(Protocol):
    """
    Issues the API request for one operation and returns raw records.

    Implementations pull every input from context.get_parameter(name, index,
    fallback) - resource, operation, id, request_data, filters, max_records,
    select_columns and the output-shaping flags - and never receive a request
    object directly.
    """

    async def execute(self, context: HostContext) -> List[Dict[str, Any]]:
        ...


def load_executor(import_path: str) -> OperationExecutor:
    """
    Build an executor from a "package.module:callable" import path.

    Args:
        import_path: Module path and zero-argument factory separated by a colon

    Returns:
        The executor instance returned by the factory

    Raises:
        ValueError: If the path is malformed or does not resolve to a callable
    """
    module_name, sep, attr = import_path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Invalid executor import path '{import_path}'. Expected 'module:callable'.")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ValueError(f"'{import_path}' does not resolve to a callable")
    return factory()

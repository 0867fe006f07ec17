"""Host execution context the generic operation executor reads from."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class HostContext:
    """
    Runtime context shared by the host and the generic operation executor.

    The executor never receives a request object; it pulls every input through
    get_parameter(name, index, fallback). The execution bridge temporarily
    replaces that accessor for the duration of one agent call.
    """
    parameters: Dict[str, Any] = field(default_factory=dict)  # human-configured values
    override_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def get_parameter(self, name: str, index: int = 0, fallback: Any = None) -> Any:
        """Return a configured parameter value, or fallback when unset."""
        return self.parameters.get(name, fallback)

"""
Composable interface shared by every composition kind
"""

from enum import Enum
from typing import Protocol, runtime_checkable, Any, Callable, Optional, Tuple


class ChainKind(str, Enum):
    """Tag identifying the composition kind"""

    SERIAL = "serial"
    LOOP = "loop"
    PARALLEL = "parallel"
    BRANCH = "branch"


@runtime_checkable
class Composable(Protocol):
    """Common capability of Chain, LoopChain, ParallelChain and Branch"""

    name: str

    @property
    def kind(self) -> ChainKind:
        ...

    @property
    def arity(self) -> int:
        ...

    @property
    def steps(self) -> Tuple[Any, ...]:
        """Read-only step descriptors, for renderers walking the structure."""
        ...

    def invoke(self, env: Any, after: Optional[Callable[..., Any]] = None, *args: Any) -> None:
        ...

    def __call__(self, env: Any, after: Optional[Callable[..., Any]] = None, *args: Any) -> None:
        ...

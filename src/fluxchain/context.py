"""Call-context tree used to rebuild traces after the native stack unwinds."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional


class NodeKind(Enum):
    """Kind of a call-context node."""

    CALL = "call"
    HEAD = "head"


HEAD_NAME = "__ContextHead__"


@dataclass
class ContextNode:
    """One node of the call-context arena; links are arena indices."""

    name: str
    kind: NodeKind = NodeKind.CALL
    next: Optional[int] = None
    child: Optional[int] = None

    @property
    def printable(self) -> bool:
        return self.kind is NodeKind.CALL


@dataclass(frozen=True)
class TraceEntry:
    """A (name, depth) pair of a rendered trace."""

    name: str
    depth: int

    def __iter__(self):
        yield self.name
        yield self.depth

    def to_dict(self) -> dict:
        return {"name": self.name, "depth": self.depth}


class CallContextTree:
    """
    Arena of context nodes plus the single ``current`` pointer.

    Entering a composition hangs a HEAD node off the current node as its
    child and saves the current pointer; calls made inside the composition
    are chained from that head through ``next``. Leaving the composition
    restores the saved pointer.
    """

    def __init__(self) -> None:
        self.nodes: List[ContextNode] = []
        self.root: Optional[int] = None
        self.current: Optional[int] = None
        self._saved: List[Optional[int]] = []

    def _allocate(self, name: str, kind: NodeKind = NodeKind.CALL) -> int:
        self.nodes.append(ContextNode(name=name, kind=kind))
        return len(self.nodes) - 1

    @property
    def depth(self) -> int:
        """Number of compositions currently entered."""
        return len(self._saved)

    def push_context(self, name: str) -> None:
        """Enter a composition called ``name``."""

        if self.root is None:
            self.root = self._allocate(name)
            self.current = self.root

        head = self._allocate(HEAD_NAME, NodeKind.HEAD)
        self.nodes[self.current].child = head
        self._saved.append(self.current)
        self.current = head

    def push_call(self, name: str) -> None:
        """Record a call made inside the current composition."""

        if self.current is None:
            # A call outside of any composition becomes the root.
            self.root = self.current = self._allocate(name)
            return

        node = self._allocate(name)
        self.nodes[self.current].next = node
        self.current = node

    def pop_context(self) -> None:
        """Leave the innermost composition."""

        if self._saved:
            self.current = self._saved.pop()

    def exec_trace(self) -> List[TraceEntry]:
        """Full depth-first traversal, children before siblings."""

        trace: List[TraceEntry] = []
        # Explicit stack of (index, depth); siblings are pushed before
        # children so that children come out first.
        pending = [] if self.root is None else [(self.root, 0)]
        while pending:
            index, depth = pending.pop()
            node = self.nodes[index]
            if node.printable:
                trace.append(TraceEntry(node.name, depth))
            if node.next is not None:
                pending.append((node.next, depth))
            if node.child is not None:
                pending.append((node.child, depth + 1))
        return trace

    def back_trace(self) -> List[TraceEntry]:
        """Most direct path from the root to the active frame."""

        trace: List[TraceEntry] = []
        index = self.root
        depth = 0
        while index is not None:
            node = self.nodes[index]
            if node.printable:
                trace.append(TraceEntry(node.name, depth))
            if node.next is not None:
                index = node.next
            else:
                index = node.child
                depth += 1
        return trace


def format_call_tree(trace: Iterable[TraceEntry]) -> str:
    """Render a trace root first, indented two spaces per level."""

    lines = ["  " * depth + name for name, depth in trace]
    return "".join("\n" + line for line in lines)


def format_stack_trace(trace: Iterable[TraceEntry]) -> str:
    """Render a trace most recent first, like a native stack trace."""

    out = []
    depth = 0
    for name, entry_depth in reversed(list(trace)):
        location = "after " if entry_depth == depth else "in "
        depth = entry_depth
        out.append("\n      " + "  " * depth + location + name)
    return "".join(out)

"""
DOT export

Renders a composition as a static execution graph in the DOT language. The
outermost composition becomes a ``digraph``, nested ones become
``subgraph cluster_*`` blocks, and plain steps become nodes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .base import ChainBase
from .branch import Branch
from .interfaces import ChainKind
from .step import StepDescriptor

_UNSAFE = re.compile(r"[ ()]")

EMPTY_NODE = "__empty__"


def format_name(name: str) -> str:
    """Replace characters DOT cannot take in a bare identifier."""
    return _UNSAFE.sub("_", name)


@dataclass
class _NameSlot:
    target: Any
    name: str
    count: int = 0


@dataclass
class Fragment:
    """Rendered lines of one element plus its entry and exit node names."""

    lines: List[str] = field(default_factory=list)
    entry: str = EMPTY_NODE
    exit: str = EMPTY_NODE


class DotBuilder:
    """
    Walks a composition and allocates unique node names.

    The first use of a callable gets its formatted name; later uses of the
    same callable get ``name__N``; a different callable that formats to a
    name already taken gets ``name_N``.
    """

    def __init__(self) -> None:
        self._names: Dict[str, List[_NameSlot]] = {}

    def node_name(self, target: Any, display: str) -> str:
        base = format_name(display)
        slots = self._names.get(base)
        if slots is None:
            self._names[base] = [_NameSlot(target, base)]
            return base

        for slot in slots:
            if slot.target is target:
                slot.count += 1
                return f"{slot.name}__{slot.count}"

        name = f"{base}_{len(slots)}"
        slots.append(_NameSlot(target, name))
        return name

    def render(self, chain: ChainBase) -> str:
        return "\n".join(self._element(chain, chain.name, top=True).lines)

    # -- elements ------------------------------------------------------------

    def _step(self, desc: StepDescriptor) -> Fragment:
        return self._element(desc.fn, desc.name, top=False)

    def _element(self, target: Any, display: str, top: bool) -> Fragment:
        name = self.node_name(target, display)
        if not isinstance(target, ChainBase):
            return Fragment(entry=name, exit=name)

        header = f"digraph {name} {{" if top else f"subgraph cluster_{name} {{"
        content = self._content(target)
        lines = [header, f"label = {name};"] + content.lines + ["}"]
        return Fragment(lines, content.entry, content.exit)

    def _content(self, chain: ChainBase) -> Fragment:
        if chain.kind is ChainKind.BRANCH:
            return self._branch(chain)
        if chain.kind is ChainKind.LOOP:
            return self._loop(chain)
        if chain.kind is ChainKind.PARALLEL:
            return self._parallel(chain)
        return self._serial(chain.steps)

    def _serial(self, steps) -> Fragment:
        if not steps:
            return Fragment()

        parts = [self._step(desc) for desc in steps]
        lines: List[str] = []
        for part in parts:
            lines.extend(part.lines)
        if len(parts) == 1 and not parts[0].lines:
            lines.append(f"{parts[0].entry};")
        for prev, nxt in zip(parts, parts[1:]):
            lines.append(f"{prev.exit} -> {nxt.entry};")
        return Fragment(lines, parts[0].entry, parts[-1].exit)

    def _branch(self, branch: Branch) -> Fragment:
        cond = self._step(branch.condition)
        if_true = self._step(branch.if_true)
        if_false = self._step(branch.if_false)
        end = self.node_name(None, "branch_end")

        lines = cond.lines + if_true.lines + if_false.lines
        lines += [
            f"{cond.exit} -> {if_true.entry} [label = true];",
            f"{cond.exit} -> {if_false.entry} [label = false];",
            f"{if_true.exit} -> {end};",
            f"{if_false.exit} -> {end};",
        ]
        return Fragment(lines, cond.entry, end)

    def _loop(self, loop) -> Fragment:
        end = self.node_name(None, "loop_end")
        if loop.condition is None:
            body = self._serial(loop.steps)
            return Fragment(body.lines + [f"{body.exit} -> {end};"], body.entry, end)

        cond = self._step(loop.condition)
        body = self._serial(loop.steps)
        lines = cond.lines + body.lines
        if loop.steps:
            lines += [
                f"{cond.exit} -> {body.entry} [label = true];",
                f"{body.exit} -> {cond.entry};",
            ]
        else:
            lines.append(f"{cond.exit} -> {cond.entry} [label = true];")
        lines.append(f"{cond.exit} -> {end} [label = false];")
        return Fragment(lines, cond.entry, end)

    def _parallel(self, chain: ChainBase) -> Fragment:
        fork = self.node_name(None, "fork")
        join = self.node_name(None, "join")
        lines: List[str] = []

        if not chain.steps:
            lines.append(f"{fork} -> {join};")
        for desc in chain.steps:
            part = self._step(desc)
            lines.extend(part.lines)
            lines.append(f"{fork} -> {part.entry};")
            lines.append(f"{part.exit} -> {join};")
        return Fragment(lines, fork, join)


def gen_dot(chain: ChainBase) -> str:
    """Render ``chain`` as a DOT digraph."""
    return DotBuilder().render(chain)

# flowgraph/layout/cache.py
"""Caller-owned cache of computed layouts.

``build_layout`` itself keeps no state. Editors that re-render the same flow
many times can hold one of these; an entry is dropped as soon as the flow's
node-id set changes, so removed or added nodes never reuse stale positions.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional, Tuple

from flowgraph.layout.engine import LayoutOptions, LayoutResult, build_layout
from flowgraph.structural.model import FlowSpec
from flowgraph.utils.logger import get_logger

logger = get_logger("layout.cache")


def node_signature(flow: FlowSpec) -> FrozenSet[str]:
    return frozenset(n.id for n in flow.nodes)


class PositionCache:
    """flow id -> (node-id set, options, layout)."""

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[FrozenSet[str], LayoutOptions, LayoutResult]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, flow_id: str) -> bool:
        return flow_id in self._entries

    def get(self, flow: FlowSpec, options: Optional[LayoutOptions] = None) -> Optional[LayoutResult]:
        """Cached layout for ``flow``, or None when missing or invalidated."""
        entry = self._entries.get(flow.id)
        if entry is None:
            return None
        signature, cached_opts, result = entry
        if signature != node_signature(flow):
            logger.debug(f"layout cache: node set of {flow.id} changed; dropping entry")
            del self._entries[flow.id]
            return None
        if cached_opts != (options or LayoutOptions()):
            return None
        return result

    def layout(self, flow: FlowSpec, options: Optional[LayoutOptions] = None) -> LayoutResult:
        """Return the cached layout or compute and store a fresh one."""
        opts = options or LayoutOptions()
        result = self.get(flow, opts)
        if result is not None:
            self.hits += 1
            return result
        self.misses += 1
        result = build_layout(flow, opts)
        self._entries[flow.id] = (node_signature(flow), opts, result)
        return result

    def invalidate(self, flow_id: Optional[str] = None) -> None:
        """Forget one flow, or everything when ``flow_id`` is None."""
        if flow_id is None:
            self._entries.clear()
        else:
            self._entries.pop(flow_id, None)

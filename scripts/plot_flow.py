#!/usr/bin/env python3
# scripts/plot_flow.py

from __future__ import annotations

from pathlib import Path
import sys
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from typing import Dict, Optional
import textwrap
import typer
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.patches import FancyBboxPatch
from matplotlib.lines import Line2D

from flowgraph.layout.engine import LayoutOptions, LayoutResult, PositionedNode, build_layout
from flowgraph.structural.checker import validate_graph
from flowgraph.structural.spec import validate_flow_spec
from flowgraph.utils.io import load_document, save_fig
from flowgraph.utils.logger import log


app = typer.Typer(help="Render a flow's computed layout to an image (PNG/PDF/SVG).")

# ---------- color/theme ----------
NODE_COLORS: Dict[str, str] = {
    "trigger": "#DBEAFE",
    "profileFilter": "#FEF3C7",
    "split": "#EDE9FE",
    "wait": "#F3F4F6",
    "message": "#FFFFFF",
    "outcome": "#D1FAE5",
    "merge": "#E2E8F0",
    "note": "#FFF7ED",
    "strategy": "#FFEDD5",
}
BORDER = "#3c3c3c"
EDGE_BASE = "#888888"
EDGE_NOTE = "#F59E0B"
ERROR_BORDER = "#E4572E"
FONT_FAMILY = "DejaVu Sans"


def _label(node: PositionedNode, width_chars: int) -> str:
    text = node.title if node.type != "merge" else "merge"
    return "\n".join(textwrap.wrap(text, width=width_chars)[:3]) or node.id


def _draw_node(ax, node: PositionedNode, highlight: bool = False):
    """Rounded box at the node's layout rectangle (y grows downward)."""
    box = FancyBboxPatch(
        (node.x, node.y), node.width, node.height,
        boxstyle="round,pad=0,rounding_size=8",
        linewidth=2.0 if highlight else 1.0,
        edgecolor=ERROR_BORDER if highlight else BORDER,
        facecolor=NODE_COLORS.get(node.type, "#FFFFFF"),
        linestyle="--" if node.type in ("note", "strategy") else "-",
        zorder=2,
    )
    ax.add_patch(box)
    ax.text(
        node.x + node.width / 2, node.y + node.height / 2,
        _label(node, max(8, int(node.width / 9))),
        ha="center", va="center", fontsize=6, zorder=3,
    )


def _draw_edges(ax, result: LayoutResult):
    for e in result.edges:
        if len(e.points) < 2:
            continue
        xs = [p[0] for p in e.points]
        ys = [p[1] for p in e.points]
        to_note = any(
            n is not None and n.type in ("note", "strategy")
            for n in (result.node(e.from_id), result.node(e.to_id))
        )
        ax.plot(xs, ys, color=EDGE_NOTE if to_note else EDGE_BASE,
                linewidth=1.0, linestyle=":" if to_note else "-", zorder=1)
        ax.annotate(
            "", xy=e.points[-1], xytext=e.points[-2],
            arrowprops=dict(arrowstyle="-|>", color=EDGE_NOTE if to_note else EDGE_BASE, lw=1.0),
            zorder=1,
        )
        if e.label:
            mx, my = e.points[len(e.points) // 2]
            ax.text(mx, my, e.label, fontsize=6, ha="center", va="center",
                    bbox=dict(boxstyle="round,pad=0.2", fc="white", ec="none"), zorder=3)


@app.command()
def plot(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Flow document (.json/.yaml)"),
    out: Path = typer.Option(Path("experiments/results/flow.png"), "--out", "-o", help="Output image path"),
    title: Optional[str] = typer.Option(None, "--title", help="Figure title"),
    row_spacing: float = typer.Option(44, "--row-spacing", help="Vertical gap between rows"),
    show_legend: bool = typer.Option(True, "--legend/--no-legend", help="Show legend"),
):
    """Plot the layout; nodes named in graph errors get a red border."""
    matplotlib.rcParams["font.family"] = FONT_FAMILY

    flow = validate_flow_spec(load_document(input))
    log.info(f"Loaded flow: {input} ({len(flow.nodes)} nodes, {len(flow.edges)} edges)")

    graph = validate_graph(flow)
    flagged = {nid for err in graph.errors for nid in err.node_ids}
    if not graph.valid:
        log.warning(f"Flow has {len(graph.errors)} structural error(s); flagged nodes are outlined")

    result = build_layout(flow, LayoutOptions(row_spacing=row_spacing))
    if not result.nodes:
        raise typer.BadParameter("flow has no nodes to plot")

    min_x = min(n.x for n in result.nodes)
    max_x = max(n.x + n.width for n in result.nodes)
    min_y = min(n.y for n in result.nodes)
    max_y = max(n.y + n.height for n in result.nodes)
    scale = 1 / 110.0
    fig = plt.figure(figsize=(max(6.0, (max_x - min_x) * scale), max(4.0, (max_y - min_y) * scale)), dpi=180)
    ax = plt.gca()
    ax.set_axis_off()
    ax.set_xlim(min_x - 40, max_x + 40)
    ax.set_ylim(max_y + 40, min_y - 40)
    ax.set_aspect("equal")

    _draw_edges(ax, result)
    for node in result.nodes:
        _draw_node(ax, node, highlight=node.id in flagged)

    ax.set_title(title or f"{flow.name} ({flow.id})", fontsize=11, pad=14)

    leg = None
    if show_legend:
        kinds = sorted({n.type for n in result.nodes})
        legend_elems = [
            Line2D([0], [0], marker="s", color="w", label=k, markerfacecolor=NODE_COLORS.get(k, "#FFFFFF"),
                   markeredgecolor=BORDER, markersize=10)
            for k in kinds
        ]
        if flagged:
            legend_elems.append(Line2D([0], [0], color=ERROR_BORDER, lw=2, label="graph error"))
        leg = fig.legend(handles=legend_elems, loc="lower center", frameon=False, fontsize=8,
                         ncol=min(len(legend_elems), 5))

    plt.tight_layout()
    extra = dict(bbox_extra_artists=(leg,)) if leg else {}
    save_fig(plt.gcf(), out, bbox_inches="tight", pad_inches=0.05, **extra)
    log.info(f"[ok] wrote flow plot to {out}")


if __name__ == "__main__":
    app()

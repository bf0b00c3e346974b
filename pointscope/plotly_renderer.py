"""Retained-mode renderer drawing :class:`FrameLayers` into a Plotly FigureWidget.

The figure is laid out in *pixel* coordinates: the x axis spans
``[0, width]`` and the y axis ``[height, 0]`` (reversed), with zero margins,
so screen positions from the transform can be written straight into trace
data. All Plotly interactivity (drag, zoom, hover) is switched off; pointer
input reaches Python through the pane driver instead.

Trace order is fixed and matches the z-order of the layers::

    0 unselected   1 selected   2 hovered   3 cluster counts
    4 selection overlay   5 polygon vertices

The box or polygon overlay is an outline trace (filled with ``toself``), so
gesture frames only touch trace data. Chrome (grid every 50 px, axis labels)
lives in the layout shapes and annotations, which are assigned only when a
frame carries a :class:`~pointscope.scatter_render.ChromeSpec`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import plotly.graph_objects as go

from .scatter_render import ChromeSpec, DrawableEntity, FrameLayers, SelectionOverlay

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class RendererStyle:
    """Colors and strokes used by :class:`PlotlyRenderer`."""

    background: str = "#0f172a"
    grid_color: str = "hsl(215, 25%, 25%)"
    label_color: str = "hsl(215, 25%, 40%)"
    outline_color: str = "#f8fafc"
    hover_outline_color: str = "rgba(0,0,0,0.3)"
    overlay_color: str = "#4a9eff"
    overlay_fill: str = "rgba(74,158,255,0.1)"
    count_color: str = "white"
    font_family: str = "monospace"


_TRACE_NAMES = (
    "unselected",
    "selected",
    "hovered",
    "cluster_counts",
    "selection_overlay",
    "polygon_vertices",
)
_TRACE_MODES = {"cluster_counts": "text", "selection_overlay": "lines"}


class PlotlyRenderer:
    """Draw frames into a ``go.FigureWidget``.

    Parameters
    ----------
    figure : go.FigureWidget, optional
        Target widget; a new one is created when omitted.
    style : RendererStyle
        Visual styling.
    """

    def __init__(self, figure: Optional[go.FigureWidget] = None, *, style: RendererStyle = RendererStyle()) -> None:
        self.style = style
        self.figure = figure if figure is not None else go.FigureWidget()
        self._init_figure()

    def _init_figure(self) -> None:
        fig = self.figure
        axis = dict(
            visible=False,
            fixedrange=True,
            showgrid=False,
            zeroline=False,
        )
        with fig.batch_update():
            fig.data = ()
            for name in _TRACE_NAMES:
                mode = _TRACE_MODES.get(name, "markers")
                fig.add_trace(
                    go.Scatter(
                        name=name,
                        x=[],
                        y=[],
                        mode=mode,
                        hoverinfo="skip",
                        showlegend=False,
                    )
                )
            fig.update_layout(
                autosize=False,
                margin=dict(l=0, r=0, t=0, b=0, pad=0),
                dragmode=False,
                hovermode=False,
                showlegend=False,
                paper_bgcolor=self.style.background,
                plot_bgcolor=self.style.background,
                font=dict(family=self.style.font_family, size=9, color=self.style.label_color),
                xaxis=dict(axis, range=[0, 1]),
                yaxis=dict(axis, range=[1, 0]),
            )

    # --- Frame drawing ---

    def draw_frame(self, layers: FrameLayers) -> None:
        """Replace the figure contents with ``layers``."""
        width, height = layers.canvas_size
        fig = self.figure
        with fig.batch_update():
            if layers.chrome is not None:
                shapes, annotations = self._build_chrome(layers.chrome)
                fig.update_layout(
                    width=int(round(width)),
                    height=int(round(height)),
                    xaxis_range=[0, width],
                    yaxis_range=[height, 0],
                    shapes=shapes,
                    annotations=annotations,
                )
            self._set_markers(fig.data[0], layers.unselected, outline=None)
            self._set_markers(fig.data[1], layers.selected, outline=self.style.outline_color, outline_width=2)
            hovered = (layers.hovered,) if layers.hovered is not None else ()
            self._set_markers(fig.data[2], hovered, outline=self.style.hover_outline_color, outline_width=1)
            self._set_counts(fig.data[3], (*layers.unselected, *layers.selected, *(e for e in hovered if e.filled)))
            self._set_overlay(fig.data[4], fig.data[5], layers.overlay)

    def _set_markers(
        self,
        trace: Any,
        entities: Sequence[DrawableEntity],
        *,
        outline: Optional[str],
        outline_width: float = 0.0,
    ) -> None:
        # Plotly marker size is a diameter.
        trace.x = [e.x for e in entities]
        trace.y = [e.y for e in entities]
        trace.customdata = [e.id for e in entities]
        trace.marker = dict(
            size=[2.0 * e.radius for e in entities],
            color=[e.color if e.filled else "rgba(0,0,0,0)" for e in entities],
            opacity=1.0,
            line=dict(width=outline_width if outline else 0, color=outline or "rgba(0,0,0,0)"),
        )

    def _set_counts(self, trace: Any, entities: Sequence[DrawableEntity]) -> None:
        clusters = [e for e in entities if e.count > 1]
        trace.x = [e.x for e in clusters]
        trace.y = [e.y for e in clusters]
        trace.text = [str(e.count) for e in clusters]
        trace.textfont = dict(color=self.style.count_color, size=8, family=self.style.font_family)

    def _set_overlay(self, outline_trace: Any, vertices_trace: Any, overlay: Optional[SelectionOverlay]) -> None:
        ox: List[float] = []
        oy: List[float] = []
        vx: List[float] = []
        vy: List[float] = []
        closed = False
        dash = "solid"
        width = 2
        if overlay is not None and overlay.kind == "box" and len(overlay.vertices) == 2:
            (x0, y0), (x1, y1) = overlay.vertices
            ox = [x0, x1, x1, x0, x0]
            oy = [y0, y0, y1, y1, y0]
            closed, dash, width = True, "dash", 1
        elif overlay is not None and overlay.kind == "polygon":
            vx = [v[0] for v in overlay.vertices]
            vy = [v[1] for v in overlay.vertices]
            if len(overlay.vertices) >= 2:
                ox, oy = list(vx), list(vy)
                if overlay.closed:
                    ox.append(vx[0])
                    oy.append(vy[0])
                    closed = True
        outline_trace.x = ox
        outline_trace.y = oy
        outline_trace.fill = "toself" if closed else "none"
        outline_trace.fillcolor = self.style.overlay_fill
        outline_trace.line = dict(color=self.style.overlay_color, width=width, dash=dash)
        vertices_trace.x = vx
        vertices_trace.y = vy
        vertices_trace.marker = dict(size=6, color=self.style.overlay_color)

    # --- Chrome ---

    def _build_chrome(self, chrome: ChromeSpec) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        width, height, step = chrome.width, chrome.height, chrome.grid_step
        line = dict(color=self.style.grid_color, width=0.5)
        shapes: List[Dict[str, Any]] = []
        x = 0.0
        while x <= width:
            shapes.append(dict(type="line", x0=x, y0=0, x1=x, y1=height, line=line, layer="below"))
            x += step
        y = 0.0
        while y <= height:
            shapes.append(dict(type="line", x0=0, y0=y, x1=width, y1=y, line=line, layer="below"))
            y += step
        annotations = [
            dict(
                x=width / 2, y=height - 8, text=chrome.x_label, showarrow=False,
                xref="x", yref="y", font=dict(size=8, color=self.style.label_color),
            ),
            dict(
                x=10, y=height / 2, text=chrome.y_label, showarrow=False, textangle=-90,
                xref="x", yref="y", font=dict(size=8, color=self.style.label_color),
            ),
        ]
        logger.debug("chrome rebuilt for %gx%g canvas (%d grid lines)", width, height, len(shapes))
        return shapes, annotations

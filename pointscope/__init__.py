"""Top-level public API for the ``pointscope`` package.

This module re-exports the notebook-facing surface so users can import from
a single namespace, for example:

>>> from pointscope import InMemoryDataset, ScatterExplorer  # doctest: +SKIP

It exposes both the explorer widget and the lower-level engine pieces
(transform, clustering, hit-testing, selection, viewport, render loop) for
hosts that bring their own renderer.
"""

from .geometry import Rect, Vec2, point_in_polygon
from .InputConvert import InputConvert
from .plotly_renderer import PlotlyRenderer, RendererStyle
from .points import DataBounds, Point, points_from_records
from .scatter_clustering import Cluster, ClusteringEngine, cluster_radius, dominant_color
from .scatter_config import ExplorerConfig
from .scatter_data import (
    AttributeColorizer,
    AttributeStyleProvider,
    DatasetProvider,
    InMemoryDataset,
)
from .scatter_hit_test import HitTester
from .scatter_render import (
    ChromeSpec,
    DrawableEntity,
    FrameLayers,
    Renderer,
    RenderLoop,
    SelectionOverlay,
)
from .scatter_selection import (
    BoxDragging,
    Idle,
    PolygonDrawing,
    SelectionController,
    SelectionMode,
    SelectionScene,
)
from .scatter_transform import CoordinateTransform
from .scatter_view import Viewport
from .scatter_viewport import ViewportController
from .ScatterEvent import HoverEvent, SelectionChangedEvent
from .ScatterExplorer import ScatterExplorer
from .ScatterPane import ScatterPane, ScatterPaneStyle

__all__ = [
    "AttributeColorizer",
    "AttributeStyleProvider",
    "BoxDragging",
    "ChromeSpec",
    "Cluster",
    "ClusteringEngine",
    "CoordinateTransform",
    "DataBounds",
    "DatasetProvider",
    "DrawableEntity",
    "ExplorerConfig",
    "FrameLayers",
    "HitTester",
    "HoverEvent",
    "Idle",
    "InMemoryDataset",
    "InputConvert",
    "PlotlyRenderer",
    "Point",
    "PolygonDrawing",
    "Rect",
    "RenderLoop",
    "Renderer",
    "RendererStyle",
    "ScatterExplorer",
    "ScatterPane",
    "ScatterPaneStyle",
    "SelectionChangedEvent",
    "SelectionController",
    "SelectionMode",
    "SelectionOverlay",
    "SelectionScene",
    "Vec2",
    "Viewport",
    "ViewportController",
    "cluster_radius",
    "dominant_color",
    "point_in_polygon",
    "points_from_records",
]

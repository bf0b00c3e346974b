"""
ScatterPane: responsive host for the scatter FigureWidget with an input driver

This module hosts the Plotly ``FigureWidget`` that :class:`PlotlyRenderer`
draws into and adds a hidden ``anywidget`` driver that makes the figure
behave like a raw interactive canvas.

Public API
----------

- `ScatterInputDriver`
    An `anywidget.AnyWidget` whose frontend JavaScript

    - measures the host container (ResizeObserver, debounced) and writes the
      pixel size into the synced `width_px` / `height_px` traits,
    - listens to pointer events on the host and forwards them to Python as
      custom messages in canvas pixel coordinates (origin top-left),
    - listens to key presses while the host has focus and forwards them.

- `ScatterPaneStyle`
    Frozen dataclass with wrapper styling (padding/border/radius/overflow).

- `ScatterPane`
    Python wrapper assembling host box, figure widget and driver; exposes
    `.widget`, `.reflow()`, `.on_input(callback)` and `.on_resize(callback)`.

Message format
--------------

Pointer messages::

    {"type": "pointer", "kind": "down"|"move"|"up"|"click"|"dblclick"|"leave",
     "x": float, "y": float, "shift": bool, "button": int}

Key messages::

    {"type": "key", "key": str, "shift": bool, "ctrl": bool, "alt": bool, "meta": bool}

`parse_driver_message` turns these into `PointerInput` / `KeyInput` values;
anything else is ignored (logged at debug level).

Key contract / expectation
--------------------------

As with any Plotly pane, some ancestor must give the pane a real pixel
height. The renderer sizes the figure to the reported host size, so the
figure's plot area and the pointer coordinate space coincide.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import anywidget
import ipywidgets as W
import traitlets

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

__all__ = [
    "KeyInput",
    "PointerInput",
    "ScatterInputDriver",
    "ScatterPane",
    "ScatterPaneStyle",
    "parse_driver_message",
]

POINTER_KINDS = ("down", "move", "up", "click", "dblclick", "leave")


@dataclass(frozen=True)
class PointerInput:
    """Pointer event in canvas pixels."""

    kind: str
    x: float
    y: float
    shift: bool = False
    button: int = 0


@dataclass(frozen=True)
class KeyInput:
    """Key press forwarded from the focused host."""

    key: str
    shift: bool = False
    ctrl: bool = False
    alt: bool = False
    meta: bool = False


DriverInput = Union[PointerInput, KeyInput]


def parse_driver_message(content: Any) -> Optional[DriverInput]:
    """Decode a driver message; returns ``None`` for anything unrecognized."""
    if not isinstance(content, dict):
        return None
    kind = content.get("type")
    try:
        if kind == "pointer":
            pkind = str(content["kind"])
            if pkind not in POINTER_KINDS:
                logger.debug("Ignoring pointer message with kind %r", pkind)
                return None
            return PointerInput(
                kind=pkind,
                x=float(content.get("x", 0.0)),
                y=float(content.get("y", 0.0)),
                shift=bool(content.get("shift", False)),
                button=int(content.get("button", 0)),
            )
        if kind == "key":
            return KeyInput(
                key=str(content["key"]),
                shift=bool(content.get("shift", False)),
                ctrl=bool(content.get("ctrl", False)),
                alt=bool(content.get("alt", False)),
                meta=bool(content.get("meta", False)),
            )
    except (KeyError, TypeError, ValueError):
        logger.debug("Malformed driver message: %r", content)
        return None
    logger.debug("Ignoring driver message of type %r", kind)
    return None


class ScatterInputDriver(anywidget.AnyWidget):
    """
    Frontend size reporter and input forwarder for the scatter host.

    Traitlets (synced to frontend)
    ------------------------------

    width_px / height_px:
        Host size in pixels, written by the frontend after each debounced
        resize. Zero until the first measurement.

    debounce_ms:
        Debounce delay for resize reporting (milliseconds).

    min_delta_px:
        Ignore size changes smaller than this after the first report.

    debug_js:
        Enable frontend console logging.
    """

    width_px = traitlets.Int(0).tag(sync=True)
    height_px = traitlets.Int(0).tag(sync=True)

    debounce_ms = traitlets.Int(60).tag(sync=True)
    min_delta_px = traitlets.Int(2).tag(sync=True)

    debug_js = traitlets.Bool(False).tag(sync=True)

    _esm = r"""
    function clampInt(x, dflt) {
      let n = Number(x);
      return Number.isFinite(n) ? Math.trunc(n) : dflt;
    }

    function safeLog(enabled, ...args) {
      if (enabled) console.log("[ScatterInputDriver]", ...args);
    }

    function pxSizeOf(el) {
      const r = el.getBoundingClientRect();
      return { w: Math.round(r.width), h: Math.round(r.height) };
    }

    function findPlotEl(host) {
      if (!host) return null;
      return host.querySelector(".js-plotly-plot");
    }

    const FORWARDED_KEYS = new Set(["+", "=", "-", "Home", "Escape", "Enter", "B", "L", "C", "b", "l", "c"]);

    export default {
      render({ model, el }) {
        el.style.display = "none";

        const debug = !!model.get("debug_js");
        const host = el.parentElement;
        if (!host) {
          safeLog(debug, "No host found; driver inactive.");
          return;
        }
        host.tabIndex = 0;
        host.style.outline = "none";
        host.style.touchAction = "none";

        let last = { w: 0, h: 0 };
        let timer = null;
        let moveFrame = null;
        let pendingMove = null;

        function report(reason) {
          const cur = pxSizeOf(host);
          if (!(cur.w > 0 && cur.h > 0)) return;
          const minDelta = clampInt(model.get("min_delta_px"), 2);
          if (last.w > 0 && Math.abs(cur.w - last.w) < minDelta && Math.abs(cur.h - last.h) < minDelta) return;
          last = cur;
          safeLog(debug, "size", reason, cur);
          model.set("width_px", cur.w);
          model.set("height_px", cur.h);
          model.save_changes();
        }

        function schedule(reason) {
          if (timer) clearTimeout(timer);
          timer = setTimeout(() => report(reason), clampInt(model.get("debounce_ms"), 60));
        }

        function localXY(ev) {
          const target = findPlotEl(host) || host;
          const r = target.getBoundingClientRect();
          return { x: ev.clientX - r.left, y: ev.clientY - r.top };
        }

        function sendPointer(kind, ev) {
          const p = localXY(ev);
          model.send({ type: "pointer", kind, x: p.x, y: p.y, shift: !!ev.shiftKey, button: ev.button | 0 });
        }

        // Capture keeps pointerup on the host when a drag is released outside it.
        const onDown = (ev) => {
          host.focus();
          try { host.setPointerCapture(ev.pointerId); } catch (e) {}
          sendPointer("down", ev);
        };
        const onUp = (ev) => {
          try { if (host.hasPointerCapture(ev.pointerId)) host.releasePointerCapture(ev.pointerId); } catch (e) {}
          sendPointer("up", ev);
        };
        const onClick = (ev) => sendPointer("click", ev);
        const onDbl = (ev) => { ev.preventDefault(); sendPointer("dblclick", ev); };
        const onLeave = (ev) => sendPointer("leave", ev);
        // Coalesce moves to one message per animation frame.
        const onMove = (ev) => {
          pendingMove = ev;
          if (moveFrame) return;
          moveFrame = requestAnimationFrame(() => {
            moveFrame = null;
            if (pendingMove) sendPointer("move", pendingMove);
            pendingMove = null;
          });
        };
        const onKey = (ev) => {
          if (!FORWARDED_KEYS.has(ev.key)) return;
          ev.preventDefault();
          ev.stopPropagation();
          model.send({
            type: "key", key: ev.key,
            shift: !!ev.shiftKey, ctrl: !!ev.ctrlKey, alt: !!ev.altKey, meta: !!ev.metaKey,
          });
        };

        host.addEventListener("pointerdown", onDown, true);
        host.addEventListener("pointermove", onMove, true);
        host.addEventListener("pointerup", onUp, true);
        host.addEventListener("click", onClick, true);
        host.addEventListener("dblclick", onDbl, true);
        host.addEventListener("pointerleave", onLeave, true);
        host.addEventListener("keydown", onKey, true);

        const ro = new ResizeObserver(() => schedule("ResizeObserver:host"));
        ro.observe(host);

        const onMsg = (msg) => {
          if (msg && msg.type === "reflow") { last = { w: 0, h: 0 }; schedule("msg:reflow"); }
        };
        model.on("msg:custom", onMsg);

        schedule("init");

        return () => {
          try { if (timer) clearTimeout(timer); } catch (e) {}
          try { if (moveFrame) cancelAnimationFrame(moveFrame); } catch (e) {}
          try { ro.disconnect(); } catch (e) {}
          try { model.off("msg:custom", onMsg); } catch (e) {}
          host.removeEventListener("pointerdown", onDown, true);
          host.removeEventListener("pointermove", onMove, true);
          host.removeEventListener("pointerup", onUp, true);
          host.removeEventListener("click", onClick, true);
          host.removeEventListener("dblclick", onDbl, true);
          host.removeEventListener("pointerleave", onLeave, true);
          host.removeEventListener("keydown", onKey, true);
        };
      }
    };
    """

    def reflow(self) -> None:
        """Ask the frontend to re-measure and re-report the host size."""
        self.send({"type": "reflow"})


@dataclass(frozen=True)
class ScatterPaneStyle:
    """
    Visual styling options for `ScatterPane`.

    Parameters
    ----------
    padding_px:
        Inner padding around the host.
    border:
        CSS border string.
    border_radius_px:
        Corner radius in pixels.
    overflow:
        Overflow policy for the wrapper.
    height:
        CSS height of the wrapper; the host must end up with a real pixel height.
    """

    padding_px: int = 0
    border: str = "1px solid rgba(15,23,42,0.08)"
    border_radius_px: int = 10
    overflow: str = "hidden"
    height: str = "500px"


class ScatterPane:
    """
    Styled host for the scatter figure plus its input driver.

    Parameters
    ----------
    figw:
        The Plotly ``FigureWidget`` drawn by the renderer.
    style:
        Wrapper styling.
    debounce_ms, min_delta_px, debug_js:
        Forwarded to :class:`ScatterInputDriver`.
    """

    def __init__(
        self,
        figw: W.Widget,
        *,
        style: ScatterPaneStyle = ScatterPaneStyle(),
        debounce_ms: int = 60,
        min_delta_px: int = 2,
        debug_js: bool = False,
    ):
        self.driver = ScatterInputDriver(
            debounce_ms=debounce_ms,
            min_delta_px=min_delta_px,
            debug_js=debug_js,
        )
        self._input_callbacks: list[Callable[[DriverInput], Any]] = []
        self._resize_callbacks: list[Callable[[int, int], Any]] = []
        self.driver.on_msg(self._on_msg)
        self.driver.observe(self._on_size, names=["width_px", "height_px"])

        self._host = W.Box(
            [figw, self.driver],
            layout=W.Layout(
                width="100%",
                height="100%",
                min_width="0",
                min_height="0",
                display="flex",
                flex_flow="column",
                overflow="hidden",
            ),
        )
        self._wrap = W.Box(
            [self._host],
            layout=W.Layout(
                width="100%",
                height=style.height,
                min_width="0",
                min_height="0",
                padding=f"{int(style.padding_px)}px",
                border=style.border,
                border_radius=f"{int(style.border_radius_px)}px",
                overflow=style.overflow,
                box_sizing="border-box",
            ),
        )

    @property
    def widget(self) -> W.Widget:
        """The outer wrapper to embed in a layout."""
        return self._wrap

    @property
    def size(self) -> tuple[int, int]:
        """Last reported host size in pixels (``(0, 0)`` before the first report)."""
        return (int(self.driver.width_px), int(self.driver.height_px))

    def reflow(self) -> None:
        self.driver.reflow()

    def on_input(self, callback: Callable[[DriverInput], Any]) -> None:
        """Register ``callback`` for decoded pointer and key input."""
        self._input_callbacks.append(callback)

    def on_resize(self, callback: Callable[[int, int], Any]) -> None:
        """Register ``callback(width, height)`` for host size reports."""
        self._resize_callbacks.append(callback)

    def close(self) -> None:
        """Detach callbacks and close the driver widget."""
        self._input_callbacks.clear()
        self._resize_callbacks.clear()
        self.driver.on_msg(self._on_msg, remove=True)
        self.driver.unobserve(self._on_size, names=["width_px", "height_px"])
        self.driver.close()

    def _on_msg(self, _widget: Any, content: Any, _buffers: Any = None) -> None:
        event = parse_driver_message(content)
        if event is None:
            return
        for callback in list(self._input_callbacks):
            try:
                callback(event)
            except Exception:
                logger.exception("Scatter input callback failed for %r", event)

    def _on_size(self, _change: Any) -> None:
        width, height = self.size
        if width <= 0 or height <= 0:
            return
        for callback in list(self._resize_callbacks):
            try:
                callback(width, height)
            except Exception:
                logger.exception("Scatter resize callback failed")

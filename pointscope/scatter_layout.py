"""Widget layout for :class:`~pointscope.ScatterExplorer.ScatterExplorer`.

``ScatterLayout`` owns the ipywidgets tree (toolbar, plot slot, status line,
hover readout, legend) and nothing else: it never touches selection or
viewport state. The explorer wires button callbacks and pushes text updates.

Layout::

    +------------------------------------------------------------+
    | [Click|Box|Polygon] [Pan]  [+] [-] [Reset] [Cancel] [Finish] [Clear] |
    +------------------------------------------------------------+
    |                       plot pane                            |
    +------------------------------------------------------------+
    | N points • M selected                     hover readout    |
    | legend rows                                                |
    +------------------------------------------------------------+
"""

from __future__ import annotations

import html
from typing import Iterable, Optional, Tuple

import ipywidgets as widgets

MODE_OPTIONS = (("Click", "click"), ("Box", "box"), ("Polygon", "polygon"))


def _button(description: str, tooltip: str, width: str = "auto") -> widgets.Button:
    return widgets.Button(
        description=description,
        tooltip=tooltip,
        layout=widgets.Layout(width=width, margin="0 2px"),
    )


class ScatterLayout:
    """Toolbar + plot slot + status/legend widgets."""

    def __init__(self, *, mode: str = "click") -> None:
        self.mode_buttons = widgets.ToggleButtons(
            options=list(MODE_OPTIONS),
            value=mode,
            tooltips=["Toggle the point under the pointer", "Drag a rectangle", "Click polygon vertices"],
            style={"button_width": "72px"},
        )
        self.pan_toggle = widgets.ToggleButton(
            value=False,
            description="Pan",
            tooltip="Drag to pan the view",
            layout=widgets.Layout(width="64px", margin="0 8px"),
        )
        self.zoom_in_button = _button("+", "Zoom in (+)", "36px")
        self.zoom_out_button = _button("-", "Zoom out (-)", "36px")
        self.reset_button = _button("Reset", "Reset view (Home)")
        self.cancel_button = _button("Cancel", "Cancel gesture (Esc)")
        self.finish_button = _button("Finish", "Finish polygon (Enter)")
        self.clear_button = _button("Clear", "Clear selection (Shift+C)")

        self.toolbar = widgets.HBox(
            [
                self.mode_buttons,
                self.pan_toggle,
                self.zoom_in_button,
                self.zoom_out_button,
                self.reset_button,
                self.cancel_button,
                self.finish_button,
                self.clear_button,
            ],
            layout=widgets.Layout(flex_flow="row wrap", align_items="center", margin="0 0 6px 0"),
        )

        self.plot_container = widgets.Box(
            layout=widgets.Layout(width="100%", min_width="0", display="flex", flex_flow="column")
        )

        self.status_html = widgets.HTML(layout=widgets.Layout(margin="0"))
        self.hover_html = widgets.HTML(layout=widgets.Layout(margin="0 0 0 auto"))
        self.status_bar = widgets.HBox(
            [self.status_html, self.hover_html],
            layout=widgets.Layout(width="100%", margin="6px 0 0 0", align_items="center"),
        )
        self.legend_box = widgets.HTML(layout=widgets.Layout(margin="4px 0 0 0"))

        self.root = widgets.VBox(
            [self.toolbar, self.plot_container, self.status_bar, self.legend_box],
            layout=widgets.Layout(width="100%"),
        )

    def set_plot_widget(self, widget: widgets.Widget) -> None:
        self.plot_container.children = (widget,)

    def set_status(self, point_count: int, selected_count: int) -> None:
        self.status_html.value = f"<b>{point_count}</b> points • <b>{selected_count}</b> selected"

    def set_hover_text(self, text: Optional[str]) -> None:
        self.hover_html.value = "" if not text else f"<code>{html.escape(text)}</code>"

    def set_legend(self, rows: Iterable[Tuple[str, str]]) -> None:
        items = [
            f'<span style="display:inline-block;margin-right:10px">'
            f'<span style="display:inline-block;width:10px;height:10px;border-radius:50%;'
            f'background:{html.escape(color)};margin-right:4px"></span>{html.escape(label)}</span>'
            for label, color in rows
        ]
        self.legend_box.value = "".join(items)

    def close(self) -> None:
        """Close every widget owned by the layout."""
        for widget in (
            self.mode_buttons,
            self.pan_toggle,
            self.zoom_in_button,
            self.zoom_out_button,
            self.reset_button,
            self.cancel_button,
            self.finish_button,
            self.clear_button,
            self.toolbar,
            self.plot_container,
            self.status_html,
            self.hover_html,
            self.status_bar,
            self.legend_box,
            self.root,
        ):
            widget.close()

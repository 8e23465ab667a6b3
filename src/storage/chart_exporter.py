# src/storage/chart_exporter.py

"""Interactive Plotly HTML trend charts for a product's price history."""

import importlib
import logging
import re
import webbrowser
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Any

from src.config.settings import Settings
from src.models.price_history import TIME_BUCKET_FORMAT, ProductHistory
from src.services.history_stats import (
    HistoryStats,
    compute_stats,
    sorted_trend,
)

logger = logging.getLogger("grocery_scout.chart")

_CHARTS_DIR: Path = Settings.CHARTS_DIR

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def _get_plotly_go() -> ModuleType:
    """Import plotly.graph_objects lazily."""
    return importlib.import_module("plotly.graph_objects")


def _ensure_charts_dir() -> Path:
    """Create charts directory if it doesn't exist."""
    _CHARTS_DIR.mkdir(parents=True, exist_ok=True)
    return _CHARTS_DIR


def _bucket_time(bucket: str) -> datetime:
    """Parse a bucket key; older day-only keys are accepted too."""
    try:
        return datetime.strptime(bucket, TIME_BUCKET_FORMAT)
    except ValueError:
        return datetime.fromisoformat(bucket)


def build_trend_figure(
    history: ProductHistory,
    product_name: str,
    stats: HistoryStats,
) -> Any:
    """Build a one-line-per-store chart with range guides.

    Dashed guides mark min / median / max across all stores; the best
    deal gets an arrow annotation.
    """
    go = _get_plotly_go()
    fig: Any = go.Figure()

    for store, points in sorted_trend(history).items():
        fig.add_trace(go.Scatter(
            x=[_bucket_time(p.date) for p in points],
            y=[p.price for p in points],
            mode="lines+markers",
            name=store[:40],
            hovertemplate=(
                f"{store}<br>"
                "%{x|%Y-%m-%d %H:00}<br>"
                "Price: $%{y:.2f}"
                "<extra></extra>"
            ),
        ))

    for label, value in (
        ("Min", stats.min),
        ("Median", stats.median),
        ("Max", stats.max),
    ):
        fig.add_hline(
            y=value,
            line_dash="dot",
            line_width=1,
            annotation_text=f"{label}: ${value:.2f}",
            annotation_position="right",
        )

    best = stats.best_deal
    fig.add_annotation(
        x=_bucket_time(best.date),
        y=best.price,
        text=f"Best deal: ${best.price:.2f} at {best.store}",
        showarrow=True,
        arrowhead=2,
    )

    fig.update_layout(
        title=f"Price History: {product_name[:60]}",
        xaxis_title="Date",
        yaxis_title="Price",
        hovermode="closest",
        template="plotly_white",
        legend={"orientation": "h", "y": -0.15},
    )
    return fig


def export_price_chart(
    history: ProductHistory | None,
    product_name: str,
    open_browser: bool = True,
) -> Path | None:
    """Write a product's trend chart to HTML.

    Returns None when the history has no points yet.
    """
    stats = compute_stats(history)
    if history is None or stats is None:
        logger.warning(
            "No price history to chart for '%s'", product_name[:60],
        )
        return None

    fig = build_trend_figure(history, product_name, stats)

    charts_dir = _ensure_charts_dir()
    slug = _SLUG_RE.sub("_", product_name.lower()).strip("_")[:30]
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = charts_dir / f"{slug or 'product'}_{stamp}.html"
    fig.write_html(str(filepath))
    logger.info("Chart saved to %s", filepath)

    if open_browser:
        webbrowser.open(filepath.as_uri())

    return filepath

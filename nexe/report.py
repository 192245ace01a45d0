from __future__ import annotations

"""
NEXE report generator + view export
-----------------------------------
This module turns the engine's current view into files:

- `generate_docx_report` writes a DOCX report with charts for the current
  year/buffer and the selected country (if any).
- `export_view` writes the current map values (one row per country) as CSV
  or JSON.

Design goals:
- Keep NEXE usable even if report dependencies are missing (lazy imports).
- Choose charts that match the current view. Example: the profile chart is
  only added when a country is selected, and the "newly exposed" chart only
  when the view is in change mode.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple
import os
import tempfile

import pandas as pd

from .state import Change

if TYPE_CHECKING:
    from .engine import NEXE


# -----------------------------
# Configuration / citation types
# -----------------------------

@dataclass
class DatasetCitation:
    """Minimal dataset metadata for the DOCX report."""
    dataset_name: str = "Population living near nuclear power plants"
    file_name: Optional[str] = None
    file_note: Optional[str] = "Country exposure and plant tables, buffers of 30, 75 and 300 km."


@dataclass
class ReportConfig:
    """High-level knobs to control how the report is written."""
    title: str = "NEXE Exposure Report"
    subtitle: str = "Nuclear Exposure Explorer"
    citation: DatasetCitation = field(default_factory=DatasetCitation)

    # How many countries to show in bar charts / tables
    top_n: int = 10

    # Optional: list of CLI commands that led to the current view
    command_log: Optional[List[str]] = None


# -----------------------------
# Export
# -----------------------------

def view_frame(engine: "NEXE") -> pd.DataFrame:
    """One row per country for the current (year, buffer)."""
    q = engine.query
    snap = engine.state.snapshot()
    rows = []
    for iso3 in q.entities():
        r = q.exposure_at(iso3, snap.year, snap.buffer_km)
        info = q.rank_at(iso3, snap.year, snap.buffer_km)
        rows.append({
            "iso3": iso3,
            "country": r.label if r else iso3,
            "year": snap.year,
            "buffer_km": snap.buffer_km,
            "pct_near": r.pct_near if r else None,
            "pop_near": r.pop_near if r else None,
            "num_plants": r.num_plants if r else None,
            "delta_pop_near": q.delta_at(iso3, snap.year, snap.buffer_km),
            "rank": info.rank if info else None,
            "ranked_total": info.total if info else None,
            "fill": engine.view.fills.get(iso3),
        })
    return pd.DataFrame(rows, columns=[
        "iso3", "country", "year", "buffer_km", "pct_near", "pop_near",
        "num_plants", "delta_pop_near", "rank", "ranked_total", "fill",
    ])


def export_view(engine: "NEXE", out_path: str, fmt: str = "csv") -> str:
    """Export the current view as CSV or JSON (records)."""
    df = view_frame(engine)
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    if fmt == "csv":
        df.to_csv(out_path, index=False)
    elif fmt == "json":
        df.to_json(out_path, orient="records", indent=2)
    else:
        raise ValueError("export format must be: csv | json")
    return out_path


# -----------------------------
# Main entry point used by CLI
# -----------------------------

def generate_docx_report(
    engine: "NEXE",
    out_path: str,
    *,
    config: Optional[ReportConfig] = None,
) -> str:
    """
    Generate a DOCX report + charts for the engine's current view.

    The report reflects the view at call time; it does not change the state.
    """
    config = config or ReportConfig()

    # Lazy imports: only required when "report" is used.
    try:
        from docx import Document
        from docx.shared import Pt, Inches
        from docx.enum.text import WD_ALIGN_PARAGRAPH
    except ImportError as e:
        raise ImportError(
            "Missing dependency: python-docx.\n"
            "Install it with: python -m pip install python-docx"
        ) from e

    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError as e:
        raise ImportError(
            "Missing dependency: matplotlib.\n"
            "Install with: python -m pip install matplotlib"
        ) from e

    q = engine.query
    view = engine.view
    snap = view.state
    if not engine.store.exposures:
        raise ValueError("No exposure records to report on.")

    top = q.top_exposed(snap.year, snap.buffer_km, config.top_n)

    # -----------------------------
    # 1) Charts
    # -----------------------------
    tmpdir = tempfile.mkdtemp(prefix="nexe_report_")
    # Each chart is: (title, file_path, caption)
    chart_paths: List[Tuple[str, str, str]] = []

    def _save(filename: str) -> str:
        path = os.path.join(tmpdir, filename)
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()
        return path

    def _bar(title: str, labels: List[str], values: List[float], ylabel: str, caption: str, filename: str) -> None:
        plt.figure()
        plt.bar(labels, values)
        plt.xticks(rotation=45, ha="right")
        plt.title(title)
        plt.ylabel(ylabel)
        chart_paths.append((title, _save(filename), caption))

    if top:
        _bar(
            f"Top {len(top)} countries by share within {snap.buffer_km} km ({snap.year})",
            [r.label for r in top],
            [r.pct_near for r in top],
            "% of population",
            "Countries ranked by the share of their population living near a plant.",
            "top_share.png",
        )

    if isinstance(view.mode, Change):
        gains = sorted(
            ((iso3, v) for iso3, v in view.fills.items() if v is not None),
            key=lambda kv: kv[1],
            reverse=True,
        )[:config.top_n]
        if gains:
            _bar(
                f"Newly exposed people, {view.mode.prev_year}-{view.mode.year} ({snap.buffer_km} km)",
                [iso3 for iso3, _ in gains],
                [v for _, v in gains],
                "Millions of people",
                "Increase in people living near plants since the previous decade (decreases count as zero).",
                "top_change.png",
            )

    if view.profile:
        _bar(
            f"Exposure profile of {view.selected_name}, {snap.year}",
            [f"{row.buffer_km} km" for row in view.profile],
            [row.pct_near for row in view.profile],
            "% of population",
            "How exposure grows with distance from the nearest plant.",
            "profile.png",
        )

    # -----------------------------
    # 2) Build DOCX report
    # -----------------------------
    doc = Document()
    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(11)

    def _center_title(text: str, size: int, bold: bool = False, italic: bool = False) -> None:
        p = doc.add_paragraph()
        r = p.add_run(text)
        r.bold = bold
        r.italic = italic
        r.font.size = Pt(size)
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER

    def _kv(key: str, value: str) -> None:
        p = doc.add_paragraph()
        r = p.add_run(f"{key}: ")
        r.bold = True
        p.add_run(value)

    _center_title(config.title, 22, bold=True)
    _center_title(config.subtitle, 12, italic=True)

    doc.add_paragraph("")
    _kv("Dataset", config.citation.dataset_name)
    if config.citation.file_name:
        _kv("Data file", config.citation.file_name)
    if config.citation.file_note:
        _kv("Note", config.citation.file_note)
    _kv("View", view.title)
    _kv("Year", str(snap.year))
    _kv("Buffer", f"{snap.buffer_km} km")
    _kv("Selected country", view.selected_name or "none")
    _kv("Countries with data", str(len(q.entities())))

    if view.summary:
        doc.add_paragraph("")
        doc.add_heading("Country summary", level=1)
        doc.add_paragraph(" ".join(view.summary))

    if config.command_log:
        doc.add_paragraph("")
        doc.add_heading("Command log (reproducibility)", level=1)
        doc.add_paragraph("These NEXE commands produced this view:")
        for line in config.command_log:
            doc.add_paragraph(line, style="List Bullet")

    doc.add_paragraph("")
    doc.add_heading("Visualizations", level=1)
    for title, path, caption in chart_paths:
        doc.add_paragraph(title)
        doc.add_picture(path, width=Inches(6.5))
        doc.add_paragraph(caption)
        doc.add_paragraph("")

    if top:
        doc.add_heading("Most exposed countries", level=1)
        t = doc.add_table(rows=1, cols=6)
        h = t.rows[0].cells
        h[0].text = "Rank"
        h[1].text = "Country"
        h[2].text = "Share (%)"
        h[3].text = "People near plants"
        h[4].text = "Newly exposed"
        h[5].text = "Plants"
        for r in top:
            info = q.rank_at(r.iso3, snap.year, snap.buffer_km)
            delta = q.delta_at(r.iso3, snap.year, snap.buffer_km)
            row = t.add_row().cells
            row[0].text = str(info.rank) if info else ""
            row[1].text = r.label
            row[2].text = f"{r.pct_near:.1f}" if r.pct_near is not None else ""
            row[3].text = f"{int(r.pop_near):,}" if r.pop_near is not None else ""
            row[4].text = f"{int(delta):,}" if delta is not None else ""
            row[5].text = str(r.num_plants) if r.num_plants is not None else ""

    # -----------------------------
    # Reproducibility footer
    # -----------------------------
    doc.add_paragraph("")
    doc.add_heading("Reproducibility footer", level=1)

    from . import __version__ as nexe_version
    from datetime import datetime as _dt
    generated_at = _dt.now().isoformat(timespec="seconds")

    doc.add_paragraph(f"NEXE version: {nexe_version}")
    doc.add_paragraph(f"Report generated at: {generated_at}")
    doc.add_paragraph(f"Exposure records: {len(engine.store.exposures)} | Plants: {len(engine.store.plants)}")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    doc.save(out_path)
    return out_path

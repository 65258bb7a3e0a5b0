"""
Export Functionality for RoundSight

Writes a finished MatchAnalysis to disk:
- JSON: the complete result structure
- CSV: one row per player (statistics plus match metadata)
- Events CSV: the event log flattened to one row per event
"""

import csv
import json
import logging
from datetime import datetime
from io import StringIO
from pathlib import Path
from typing import Any

from roundsight import __version__
from roundsight.analysis.models import MatchAnalysis
from roundsight.core.config import ExportConfig

logger = logging.getLogger(__name__)


# ============================================================================
# Data Conversion Utilities
# ============================================================================


def flatten_dict(d: dict, parent_key: str = "", sep: str = "_") -> dict:
    """Flatten a nested dictionary."""
    items: list[tuple[str, Any]] = []
    for k, v in d.items():
        new_key = f"{parent_key}{sep}{k}" if parent_key else k
        if isinstance(v, dict):
            items.extend(flatten_dict(v, new_key, sep).items())
        else:
            items.append((new_key, v))
    return dict(items)


def _write_rows(rows: list[dict], output_path: Path | None, delimiter: str) -> str:
    if not rows:
        return ""

    columns: list[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)

    output = StringIO()
    writer = csv.DictWriter(output, fieldnames=columns, delimiter=delimiter)
    writer.writeheader()
    for row in rows:
        # Lists are joined, anything still nested is written as JSON
        clean_row = {}
        for k, v in row.items():
            if isinstance(v, list):
                clean_row[k] = ";".join(str(x) for x in v)
            elif isinstance(v, dict):
                clean_row[k] = json.dumps(v)
            else:
                clean_row[k] = v
        writer.writerow(clean_row)

    csv_str = output.getvalue()
    if output_path:
        output_path.write_text(csv_str)
        logger.info(f"Exported CSV to: {output_path}")
    return csv_str


# ============================================================================
# JSON Export
# ============================================================================


def export_to_json(
    analysis: MatchAnalysis,
    output_path: Path | None = None,
    indent: int = 2,
    include_metadata: bool = True,
) -> str:
    """
    Export an analysis to JSON.

    Args:
        analysis: Finished analysis
        output_path: Optional path to write the file
        indent: JSON indentation level
        include_metadata: Whether to include export metadata

    Returns:
        JSON string
    """
    export_data = analysis.to_dict()

    if include_metadata:
        export_data = {
            "_export": {
                "exported_at": datetime.now().isoformat(),
                "format": "roundsight_json",
                "version": __version__,
            },
            **export_data,
        }

    json_str = json.dumps(export_data, indent=indent, default=str)

    if output_path:
        output_path.write_text(json_str)
        logger.info(f"Exported JSON to: {output_path}")

    return json_str


# ============================================================================
# CSV Export
# ============================================================================


def export_players_csv(
    analysis: MatchAnalysis, output_path: Path | None = None, delimiter: str = ","
) -> str:
    """Per-player statistics, one row each, with the match metadata repeated."""
    meta = analysis.metadata
    rows = []
    for player in analysis.players:
        row = {
            "map": meta.map_name,
            "rounds": meta.rounds,
            "source": meta.source,
        }
        row.update(player.to_dict())
        row["mvp"] = player.steam_id == analysis.summary.mvp_steam_id
        rows.append(row)
    return _write_rows(rows, output_path, delimiter)


def export_events_csv(
    analysis: MatchAnalysis, output_path: Path | None = None, delimiter: str = ","
) -> str:
    """Event log flattened to one row per event."""
    rows = [flatten_dict(event.to_dict()) for event in analysis.events]
    return _write_rows(rows, output_path, delimiter)


# ============================================================================
# Unified Export Function
# ============================================================================


def export_analysis(
    analysis: MatchAnalysis,
    output_path: Path,
    format: str | None = None,
    config: ExportConfig | None = None,
) -> None:
    """
    Export analysis results to the specified format.

    Format is detected from file extension if not specified.

    Args:
        analysis: Finished analysis
        output_path: Path to write the export
        format: Optional format override (json, csv)
        config: Export settings (indent, delimiter)
    """
    config = config or ExportConfig()
    if format is None:
        format = output_path.suffix.lstrip(".").lower() or config.default_format

    if format == "json":
        export_to_json(analysis, output_path, indent=config.json_indent)
    elif format == "csv":
        export_players_csv(analysis, output_path, delimiter=config.csv_delimiter)
        events_path = output_path.with_name(f"{output_path.stem}_events.csv")
        export_events_csv(analysis, events_path, delimiter=config.csv_delimiter)
    else:
        raise ValueError(f"Unsupported export format: {format}")

# luxury_forecaster_src/file_utils.py

import csv
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

FORECAST_LOG_HEADER: List[str] = [
    "timestamp", "target", "regressor_set", "order", "train_end_year", "target_year",
    "point_forecast", "lower", "upper", "confidence", "actual",
    "absolute_error", "percentage_error", "valid", "forecast_hash",
]


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    No error is raised if the directory already exists.
    """
    path.mkdir(parents=True, exist_ok=True)


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path string relative to a base directory if not absolute.

    Examples
    --------
    >>> resolve_path("data/file.csv", Path("/project"))
    PosixPath('/project/data/file.csv')
    """
    path = Path(path_str)
    return path if path.is_absolute() else (base_dir / path)


def write_ranked_table(result, csv_path: Path, valid_only: bool = False) -> Path:
    """
    Write the ranked model table of a search result to CSV.

    Parameters
    ----------
    result : SearchResult
        Output of ``ModelSearch.search``.
    csv_path : Path
        Destination file (parents created, overwritten if present).
    valid_only : bool, default=False
        Restrict the table to candidates that passed diagnostics. By default
        every fitted candidate is listed with its ``valid`` flag.

    Returns
    -------
    Path
        The written path.
    """
    ensure_dir(csv_path.parent)
    table = result.to_frame(valid_only=valid_only)
    table.insert(0, "regressor_set", result.regressor_set)
    table.to_csv(csv_path, index=False)
    logger.info("Wrote ranked table (%d rows) for '%s' to %s",
                len(table), result.regressor_set, csv_path)

    if result.failures:
        failures_path = csv_path.with_name(f"{csv_path.stem}_failures.csv")
        result.failure_frame().to_csv(failures_path, index=False)
        logger.info("Wrote %d failed candidates to %s", len(result.failures), failures_path)
    return csv_path


def forecast_row(report) -> Dict[str, Any]:
    """Flatten a WorkflowReport into one forecast log row."""
    fc = report.forecast
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "target": report.target,
        "regressor_set": fc.regressor_set,
        "order": fc.order,
        "train_end_year": report.train_end_year,
        "target_year": fc.target_year,
        "point_forecast": fc.point_forecast,
        "lower": fc.lower,
        "upper": fc.upper,
        "confidence": fc.confidence,
        "actual": fc.actual,
        "absolute_error": fc.absolute_error,
        "percentage_error": fc.percentage_error,
        "valid": report.selected.valid,
        "forecast_hash": report.forecast_hash,
    }


def append_forecast_row(csv_path: Optional[Path],
                        report,
                        header: List[str] = FORECAST_LOG_HEADER) -> None:
    """
    Append a single forecast row to CSV, creating header on first write.

    Parameters
    ----------
    csv_path : Optional[Path]
        Path to the forecast log (None to skip writing)
    report : WorkflowReport
        Result of ``run_forecast_workflow``
    header : List[str]
        Column names for the CSV
    """
    if csv_path is None:
        return

    row = forecast_row(report)
    try:
        ensure_dir(csv_path.parent)
        exists = csv_path.exists()

        with csv_path.open("a", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=header)
            if not exists:
                writer.writeheader()
            writer.writerow(row)

    except OSError as e:
        logger.error("Failed to append forecast to %s: %s", csv_path, e)
        raise
    logger.info("Appended forecast for %s to %s", row["target_year"], csv_path)

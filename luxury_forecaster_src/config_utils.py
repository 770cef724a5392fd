# luxury_forecaster_src/config_utils.py

import argparse
import logging
from dataclasses import dataclass, field
from itertools import product
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "forecaster.yaml"

# Loaded configuration tree (nested dicts); empty until initialize_config() runs
config_data: Dict[str, Any] = {}


def default_order_grid() -> List[Tuple[int, int, int]]:
    """p in {1, 2, 3}, d = 1, q in {1, 2, 3}."""
    return [(p, 1, q) for p, q in product([1, 2, 3], [1, 2, 3])]


def initialize_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the YAML configuration file into the module-level tree.

    A missing file is not an error: the defaults baked into the code are used
    and a log line records the fallback. A malformed file raises.
    """
    global config_data
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not config_path.is_file():
        logger.info("No configuration file at %s - using defaults", config_path)
        config_data = {}
        return config_data

    with config_path.open("r", encoding="utf-8") as fh:
        loaded = yaml.safe_load(fh) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping at top level")
    config_data = loaded
    logger.info("Loaded configuration from %s", config_path)
    return config_data


def _lookup(tree: Dict[str, Any], key_path: str) -> Any:
    node: Any = tree
    for part in key_path.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    config_value = _lookup(config_data, key_path)
    if config_value is not None:
        return config_value

    # Third priority: Default value
    return default


@dataclass
class ForecastSettings:
    """Settings for the search, diagnostics and forecast stages."""

    order_grid: List[Tuple[int, int, int]] = field(default_factory=default_order_grid)
    significance_level: float = 0.05
    ljung_box_lags: int = 10
    horizon: int = 1
    confidence: float = 0.95
    max_workers: Optional[int] = None
    search_timeout: Optional[float] = None
    require_convergence: bool = False
    include_intercept: bool = True
    maxiter: int = 200
    allow_invalid: bool = False

    @classmethod
    def from_config(cls, args: Optional[argparse.Namespace] = None) -> "ForecastSettings":
        """Resolve every setting with CLI > configuration file > default precedence."""
        from .parsing_utils import parse_order_grid

        defaults = cls()
        grid_value = get_config_value("model.order_grid", None, args, "orders")
        order_grid = parse_order_grid(grid_value) if grid_value is not None else defaults.order_grid

        settings = cls(
            order_grid=order_grid,
            significance_level=float(get_config_value(
                "diagnostics.significance_level", defaults.significance_level, args, "alpha")),
            ljung_box_lags=int(get_config_value(
                "diagnostics.ljung_box_lags", defaults.ljung_box_lags, args, "ljung_box_lags")),
            horizon=int(get_config_value("forecast.horizon", defaults.horizon, args, "horizon")),
            confidence=float(get_config_value(
                "forecast.confidence", defaults.confidence, args, "confidence")),
            max_workers=get_config_value("search.max_workers", defaults.max_workers, args, "workers"),
            search_timeout=get_config_value("search.timeout", defaults.search_timeout, args, "timeout"),
            require_convergence=bool(get_config_value(
                "model.require_convergence", defaults.require_convergence)),
            include_intercept=bool(get_config_value(
                "model.include_intercept", defaults.include_intercept)),
            maxiter=int(get_config_value("model.maxiter", defaults.maxiter)),
            allow_invalid=bool(get_config_value(
                "search.allow_invalid", defaults.allow_invalid, args, "allow_invalid")),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if not self.order_grid:
            raise ValueError("Order grid is empty")
        if not 0.0 < self.significance_level < 1.0:
            raise ValueError(f"significance_level must be in (0, 1), got {self.significance_level}")
        if not 0.0 < self.confidence < 1.0:
            raise ValueError(f"confidence must be in (0, 1), got {self.confidence}")
        if self.horizon < 1:
            raise ValueError(f"horizon must be positive, got {self.horizon}")
        if self.max_workers is not None and int(self.max_workers) < 1:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")

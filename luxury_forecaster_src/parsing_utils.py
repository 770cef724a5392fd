# luxury_forecaster_src/parsing_utils.py

import argparse
from itertools import product
from typing import Dict, List, Optional, Sequence, Tuple, Union
import logging

logger = logging.getLogger(__name__)

OrderTriple = Tuple[int, int, int]


def parse_range_arg(s: Optional[str], default: str = "1-3", config_key: Optional[str] = None,
                    args: Optional[argparse.Namespace] = None) -> List[int]:
    """
    Parse a CLI range argument like '1-3' or '0,1,2' into a list of integers.

    - Range format: "1-3" becomes [1, 2, 3]
    - List format: "0,1,2" becomes [0, 1, 2]
    - A list found under ``config_key`` in the configuration is used as-is

    Parameters
    ----------
    s : str, optional
        CLI range argument string to parse
    default : str, default="1-3"
        Default range if no CLI arg or config value provided
    config_key : str, optional
        Configuration key path for fallback value
    args : argparse.Namespace, optional
        CLI arguments for precedence checking

    Returns
    -------
    List[int]
        Parsed range as sorted list of unique non-negative integers

    Raises
    ------
    ValueError
        If the text cannot be parsed or contains negative values

    Examples
    --------
    >>> parse_range_arg("1-3")
    [1, 2, 3]
    >>> parse_range_arg("0,2")
    [0, 2]
    """
    from .config_utils import get_config_value

    if s is None and config_key:
        range_value = get_config_value(config_key, default, args, None)
        if isinstance(range_value, list):
            return _validated_range(int(x) for x in range_value)
        txt = str(range_value).strip()
    else:
        txt = (s or default).strip()

    try:
        if "-" in txt and "," not in txt:
            a, b = txt.split("-", 1)
            out = list(range(int(a.strip()), int(b.strip()) + 1))
        else:
            out = [int(x.strip()) for x in txt.split(",") if x.strip() != ""]
    except ValueError as e:
        raise ValueError(f"Cannot parse range '{txt}': {e}") from e

    if not out:
        raise ValueError(f"Range '{txt}' is empty")
    return _validated_range(out)


def _validated_range(values) -> List[int]:
    vals = sorted(set(values))
    if any(v < 0 for v in vals):
        raise ValueError(f"Orders must be non-negative, got {vals}")
    return vals


def build_order_grid(p_values: Sequence[int], d_values: Sequence[int],
                     q_values: Sequence[int]) -> List[OrderTriple]:
    """
    Cartesian product of AR, differencing and MA orders, p varying slowest.

    Examples
    --------
    >>> build_order_grid([1, 2], [1], [1])
    [(1, 1, 1), (2, 1, 1)]
    """
    return [(int(p), int(d), int(q)) for p, d, q in product(p_values, d_values, q_values)]


def parse_order_grid(value: Union[str, Sequence]) -> List[OrderTriple]:
    """
    Parse an explicit order grid.

    Accepts the CLI form ``"1,1,1;2,1,1"`` or a sequence of 3-element
    sequences as read from the YAML configuration.

    Examples
    --------
    >>> parse_order_grid("1,1,1;2,1,1")
    [(1, 1, 1), (2, 1, 1)]
    >>> parse_order_grid([[1, 1, 2]])
    [(1, 1, 2)]
    """
    if isinstance(value, str):
        items = [chunk.split(",") for chunk in value.split(";") if chunk.strip()]
    else:
        items = list(value)

    grid: List[OrderTriple] = []
    for item in items:
        parts = [str(x).strip() for x in item]
        if len(parts) != 3:
            raise ValueError(f"Order must have three components (p,d,q), got {item!r}")
        try:
            p, d, q = (int(x) for x in parts)
        except ValueError as e:
            raise ValueError(f"Order components must be integers, got {item!r}") from e
        if min(p, d, q) < 0:
            raise ValueError(f"Order components must be non-negative, got {item!r}")
        grid.append((p, d, q))

    if not grid:
        raise ValueError("Order grid is empty")
    # Keep first occurrence so grid position stays meaningful for tie-breaking
    return list(dict.fromkeys(grid))


def parse_regressor_sets(spec: Union[str, Dict[str, Sequence[str]]]) -> Dict[str, List[str]]:
    """
    Parse named covariate sets.

    Accepts ``"macro=GDP,Gini;wealth=HNWI"`` or a mapping of name to column
    list (configuration form). Set order is preserved.

    Examples
    --------
    >>> parse_regressor_sets("macro=GDP,Gini;wealth=HNWI")
    {'macro': ['GDP', 'Gini'], 'wealth': ['HNWI']}
    """
    if isinstance(spec, dict):
        pairs = [(str(k), [str(c) for c in v]) for k, v in spec.items()]
    else:
        pairs = []
        for chunk in str(spec).split(";"):
            if not chunk.strip():
                continue
            if "=" not in chunk:
                raise ValueError(f"Regressor set must look like 'name=col1,col2', got '{chunk.strip()}'")
            name, cols = chunk.split("=", 1)
            pairs.append((name.strip(), [c.strip() for c in cols.split(",") if c.strip()]))

    sets: Dict[str, List[str]] = {}
    for name, cols in pairs:
        if not name:
            raise ValueError("Regressor set name must not be empty")
        if not cols:
            raise ValueError(f"Regressor set '{name}' has no columns")
        if name in sets:
            raise ValueError(f"Regressor set '{name}' defined twice")
        sets[name] = cols
    if not sets:
        raise ValueError("No regressor sets given")
    return sets


def parse_future_row(spec: Optional[str]) -> Optional[Dict[str, float]]:
    """
    Parse caller-supplied future regressor values like ``"GDP=2.1,Gini=0.41"``.

    Returns None when ``spec`` is empty. Column order follows the text.

    Examples
    --------
    >>> parse_future_row("GDP=2.1,Gini=0.41")
    {'GDP': 2.1, 'Gini': 0.41}
    """
    if not spec or not spec.strip():
        return None
    row: Dict[str, float] = {}
    for item in spec.split(","):
        if not item.strip():
            continue
        if "=" not in item:
            raise ValueError(f"Future value must look like 'column=value', got '{item.strip()}'")
        key, val = item.split("=", 1)
        try:
            row[key.strip()] = float(val)
        except ValueError as e:
            raise ValueError(f"Future value for '{key.strip()}' is not a number: {val!r}") from e
    return row


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper

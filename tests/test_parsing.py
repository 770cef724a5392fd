import pytest

from luxury_forecaster_src.parsing_utils import (
    build_order_grid, parse_future_row, parse_order_grid, parse_range_arg,
    parse_regressor_sets, validate_log_level
)


def test_parse_range_arg():
    assert parse_range_arg("1-3") == [1, 2, 3]
    assert parse_range_arg("0,2") == [0, 2]
    assert parse_range_arg("2,1,2") == [1, 2]
    assert parse_range_arg(None, default="1") == [1]
    with pytest.raises(ValueError):
        parse_range_arg("a-b")


def test_build_order_grid_p_slowest():
    assert build_order_grid([1, 2], [1], [1, 2]) == [(1, 1, 1), (1, 1, 2), (2, 1, 1), (2, 1, 2)]


def test_parse_order_grid_text_and_lists():
    assert parse_order_grid("1,1,1;2,1,1") == [(1, 1, 1), (2, 1, 1)]
    assert parse_order_grid("1,1,1; 1,1,1 ;") == [(1, 1, 1)]
    assert parse_order_grid([[1, 1, 2], (0, 1, 0)]) == [(1, 1, 2), (0, 1, 0)]


@pytest.mark.parametrize("bad", ["1,1", "1,1,x", "-1,1,1", "", [[1, 2]]])
def test_parse_order_grid_rejects(bad):
    with pytest.raises(ValueError):
        parse_order_grid(bad)


def test_parse_regressor_sets():
    assert parse_regressor_sets("macro=GDP,Gini;wealth=HNWI") == {
        "macro": ["GDP", "Gini"], "wealth": ["HNWI"]
    }
    assert parse_regressor_sets({"macro": ["GDP"]}) == {"macro": ["GDP"]}


@pytest.mark.parametrize("bad", ["GDP,Gini", "macro=", "=GDP", "a=GDP;a=Gini", ""])
def test_parse_regressor_sets_rejects(bad):
    with pytest.raises(ValueError):
        parse_regressor_sets(bad)


def test_parse_future_row():
    assert parse_future_row("GDP=2.1,Gini=0.41") == {"GDP": 2.1, "Gini": 0.41}
    assert list(parse_future_row("Gini=0.41,GDP=2.1")) == ["Gini", "GDP"]
    assert parse_future_row(None) is None
    assert parse_future_row("  ") is None
    with pytest.raises(ValueError):
        parse_future_row("GDP=high")
    with pytest.raises(ValueError):
        parse_future_row("GDP")


def test_validate_log_level():
    assert validate_log_level("debug") == "DEBUG"
    with pytest.raises(ValueError):
        validate_log_level("verbose")

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from futures_seats.config import load_config


def test_load_config_requires_commodities(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("run:\n  timezone: Asia/Shanghai\n", encoding="utf-8")
    with pytest.raises(ValueError, match="commodities"):
        load_config(path)


def test_load_config_rejects_unknown_breadth(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("commodities:\n  RB: Rebar\nindicators:\n  breadths: [10, 15]\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_config(path)


def test_repo_config_loads() -> None:
    config = load_config(Path(__file__).resolve().parents[1] / "config.yaml")
    assert config.commodities["IC"] == "CSI 500 Index"
    assert config.indicators.breadths == [10, 20, "all"]
    assert config.screening.price_condition.weight == 10
    assert config.metrics.profit_windows == [15, 60, 120]

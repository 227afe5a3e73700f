from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel

Breadth = Literal[10, 20, "all"]
ScreenDays = Literal[5, 8, 13, 21]


class RunConfig(BaseModel):
    date_override: Optional[str] = None
    timezone: str = "Asia/Shanghai"
    raw_dir: str = "data/raw"
    db_path: str = "data/futures_seats.sqlite"
    out_dir: str = "out"


class IndicatorConfig(BaseModel):
    breadths: List[Breadth] = [10, 20, "all"]


class MetricsConfig(BaseModel):
    trend_windows: List[int] = [5, 15, 30]
    profit_windows: List[int] = [15, 60, 120]
    price_decimals: int = 2
    profit_decimals: int = 0
    curve_days: int = 250


class DistributionConfig(BaseModel):
    top_n: int = 10
    min_ratio_pct: float = 1.0
    other_label: str = "other"


class PriceCondition(BaseModel):
    enabled: bool = False
    days: ScreenDays = 5
    type: Literal["highest", "lowest"] = "highest"
    weight: float = 10


class CompareCondition(BaseModel):
    enabled: bool = False
    long_breadth: Breadth = 10
    short_breadth: Breadth = 10
    operator: Literal["greater", "less"] = "greater"
    weight: float = 15


class ExtremeCondition(BaseModel):
    enabled: bool = False
    breadth: Breadth = 10
    days: ScreenDays = 5
    type: Literal["max", "min"] = "max"
    weight: float = 12


class ScreeningConfig(BaseModel):
    price_condition: PriceCondition = PriceCondition()
    real_compare: CompareCondition = CompareCondition()
    net_compare: CompareCondition = CompareCondition()
    real_long_extreme: ExtremeCondition = ExtremeCondition()
    real_short_extreme: ExtremeCondition = ExtremeCondition()
    real_diff_extreme: ExtremeCondition = ExtremeCondition()
    net_long_extreme: ExtremeCondition = ExtremeCondition()
    net_short_extreme: ExtremeCondition = ExtremeCondition()
    net_diff_extreme: ExtremeCondition = ExtremeCondition()


class CacheConfig(BaseModel):
    enabled: bool = True
    ttl_s: float = 300
    max_entries: int = 512


class ReportConfig(BaseModel):
    top_results: int = 20


class AppConfig(BaseModel):
    run: RunConfig = RunConfig()
    indicators: IndicatorConfig = IndicatorConfig()
    metrics: MetricsConfig = MetricsConfig()
    distribution: DistributionConfig = DistributionConfig()
    screening: ScreeningConfig = ScreeningConfig()
    cache: CacheConfig = CacheConfig()
    report: ReportConfig = ReportConfig()
    commodities: Dict[str, str]


def load_config(path: str | Path) -> AppConfig:
    data: Dict[str, Any] = {}
    config_path = Path(path)
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
            if isinstance(loaded, dict):
                data = loaded
    if "commodities" not in data:
        raise ValueError("config.yaml must include commodities")
    return AppConfig(**data)

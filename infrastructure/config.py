import os
import json
import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional

from core.models import (
    AnalysisConfig,
    ConfluenceConfig,
    CorrelationVelocityConfig,
    StationarityConfig,
    VolatilityConfig,
)
from research_lab.backtest_pairs import BacktestConfig
from research_lab.reversion_probability import ReversionModelOptions

logger = logging.getLogger(__name__)

# =========================================================
# 1. PATH CONFIGURATION
# =========================================================
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DATA_DIR = os.path.join(BASE_DIR, "data", "historical")
ARTIFACTS_DIR = os.path.join(BASE_DIR, "data", "artifacts")
LOG_DIR = os.path.join(BASE_DIR, "data", "logs")

CONFIG_DIR = os.path.join(BASE_DIR, "infrastructure", "config")
CONFIG_FILE = os.path.join(CONFIG_DIR, "config.json")

# --- KEY FILES ---
HISTORY_FILE = os.path.join(ARTIFACTS_DIR, "scan_history.json")
BACKTEST_RESULTS_FILE = os.path.join(ARTIFACTS_DIR, "backtest_results.json")
LOG_FILE = os.path.join(LOG_DIR, "pair_reversion.log")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def ensure_dirs():
    """Create the data / config directories used by the CLI."""
    for d in [DATA_DIR, ARTIFACTS_DIR, LOG_DIR, CONFIG_DIR]:
        os.makedirs(d, exist_ok=True)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Console logging, plus a file handler when `log_file` is given."""
    handlers = [logging.StreamHandler()]
    if log_file:
        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


# =========================================================
# 2. SETTINGS LOADER
# =========================================================
@dataclass(frozen=True)
class Settings:
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    confluence: ConfluenceConfig = field(default_factory=ConfluenceConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    reversion: ReversionModelOptions = field(default_factory=ReversionModelOptions)
    train_window: int = 500
    test_window: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis.to_dict(),
            "confluence": {
                "intervals": list(self.confluence.intervals),
                "weighting": self.confluence.weighting,
                "weights": dict(self.confluence.weights) if self.confluence.weights else None,
            },
            "backtest": self.backtest.to_dict(),
            "reversion": {f.name: getattr(self.reversion, f.name) for f in fields(self.reversion)},
            "walk_forward": {"train_window": self.train_window, "test_window": self.test_window},
        }


def _overlay(base, data: Optional[Mapping]):
    """Copy of a frozen config with known keys from `data` applied."""
    if not data:
        return base
    known = {f.name for f in fields(base)}
    unknown = set(data) - known
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", type(base).__name__, sorted(unknown))
    return replace(base, **{k: v for k, v in data.items() if k in known})


def settings_from_dict(data: Mapping) -> Settings:
    analysis_data = dict(data.get("analysis") or {})
    analysis = _overlay(AnalysisConfig(), {
        k: v for k, v in analysis_data.items()
        if k not in ("stationarity", "volatility", "correlation")
    })
    analysis = replace(
        analysis,
        stationarity=_overlay(StationarityConfig(), analysis_data.get("stationarity")),
        volatility=_overlay(VolatilityConfig(), analysis_data.get("volatility")),
        correlation=_overlay(CorrelationVelocityConfig(), analysis_data.get("correlation")),
    )

    confluence_data = dict(data.get("confluence") or {})
    if "intervals" in confluence_data:
        confluence_data["intervals"] = tuple(confluence_data["intervals"])
    confluence = replace(_overlay(ConfluenceConfig(), confluence_data), analysis=analysis)

    walk_forward = data.get("walk_forward") or {}
    return Settings(
        analysis=analysis,
        confluence=confluence,
        backtest=_overlay(BacktestConfig(), data.get("backtest")),
        reversion=_overlay(ReversionModelOptions(), data.get("reversion")),
        train_window=int(walk_forward.get("train_window", 500)),
        test_window=int(walk_forward.get("test_window", 100)),
    )


def load_settings(path: str = CONFIG_FILE, create_template: bool = True) -> Settings:
    """
    Load settings from a JSON file.

    A missing file yields defaults (and a template is written when
    `create_template`). Unreadable JSON raises ValueError.
    """
    if not os.path.exists(path):
        settings = Settings()
        if create_template:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            with open(path, "w") as f:
                json.dump(settings.to_dict(), f, indent=4)
            print(f"⚠️  Created settings template at {path}")
        return settings

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid settings file {path}: {e}") from e

    return settings_from_dict(data)

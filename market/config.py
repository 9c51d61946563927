"""
Session configuration.

Defaults live in DEFAULT_CONFIG and are materialized as an OmegaConf
DictConfig so callers can merge overrides from a dict, a dotlist
("session.tick_interval_ms=100") or a YAML file.
"""

from pathlib import Path
from typing import Any, Sequence

from omegaconf import DictConfig, OmegaConf

from market.types import SESSION_LENGTH_TICKS

TICK_INTERVAL_MS = 200  # 200ms real time = 1 simulated minute at 1x
SPEED_MULTIPLIERS = (0.5, 1, 2, 5, 10)
STARTING_CASH = 10_000
MAX_ROUNDS = 10

DEFAULT_CONFIG: dict[str, Any] = {
    "session": {
        "length_ticks": SESSION_LENGTH_TICKS,
        "tick_interval_ms": TICK_INTERVAL_MS,
        "speed_multipliers": list(SPEED_MULTIPLIERS),
        "speed": 1,
    },
    "game": {
        "starting_cash": STARTING_CASH,
        "max_rounds": MAX_ROUNDS,
        "level": 1,
    },
    "experiment": {
        "seed": None,
    },
    "logging": {
        "level": "INFO",
        "event_log": None,
    },
}


def load_config(
    overrides: dict[str, Any] | Sequence[str] | None = None,
    path: Path | str | None = None,
) -> DictConfig:
    """
    Build the session config.

    Args:
        overrides: Nested dict or dotlist merged over the defaults
        path: Optional YAML file merged before the overrides

    Returns:
        Merged DictConfig

    Raises:
        ValueError: If the selected speed is not an allowed multiplier
    """
    config = OmegaConf.create(DEFAULT_CONFIG)
    if path is not None:
        config = OmegaConf.merge(config, OmegaConf.load(path))
    if overrides:
        if isinstance(overrides, dict):
            config = OmegaConf.merge(config, OmegaConf.create(overrides))
        else:
            config = OmegaConf.merge(config, OmegaConf.from_dotlist(list(overrides)))

    validate_speed(config, config.session.speed)
    return config


def validate_speed(config: DictConfig, speed: float) -> None:
    if speed not in list(config.session.speed_multipliers):
        raise ValueError(
            f"speed {speed} not in allowed multipliers {list(config.session.speed_multipliers)}"
        )


def tick_interval_seconds(config: DictConfig, speed: float, level_scale: float = 1.0) -> float:
    """Effective wall-clock seconds between ticks for a speed multiplier."""
    return config.session.tick_interval_ms * level_scale / speed / 1000.0

"""Per-store settings loaded from .dots/config.yaml (optional)."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import yaml

from dots.defaults import CONFIG_FILE_NAME, DEFAULT_PRIORITY, MAX_PRIORITY, MIN_PRIORITY

IdScheme = Literal["hierarchical", "flat"]


@dataclass(frozen=True)
class DotsConfig:
    # Prefix for flat IDs; empty means "use the issue kind"
    prefix: str = ""
    # How standalone issues are named: t{n}-{slug} or {prefix}-{hex}
    id_scheme: IdScheme = "hierarchical"
    default_priority: int = DEFAULT_PRIORITY


def load_config(root: str | Path) -> DotsConfig:
    """Read <root>/config.yaml. A missing file yields the defaults."""
    cfg_path = Path(root) / CONFIG_FILE_NAME
    if not cfg_path.exists():
        return DotsConfig()

    raw = yaml.safe_load(cfg_path.read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{cfg_path}: top-level config must be a YAML mapping")

    prefix = str(raw.get("prefix", "") or "").strip()
    if prefix and not prefix.replace("-", "").replace("_", "").isalnum():
        raise ValueError(f"{cfg_path}: prefix must be alphanumeric, got '{prefix}'")

    scheme = str(raw.get("id_scheme", "hierarchical")).strip().lower()
    if scheme not in {"hierarchical", "flat"}:
        raise ValueError(
            f"{cfg_path}: invalid id_scheme '{scheme}'. Expected one of: hierarchical, flat."
        )

    try:
        priority = int(raw.get("default_priority", DEFAULT_PRIORITY))
    except (TypeError, ValueError):
        raise ValueError(f"{cfg_path}: default_priority must be an integer") from None
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise ValueError(
            f"{cfg_path}: default_priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}"
        )

    return DotsConfig(prefix=prefix, id_scheme=scheme, default_priority=priority)  # type: ignore[arg-type]

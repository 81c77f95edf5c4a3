"""Configuration utilities for the finance ledger.

Provides the default categories and helpers to load user-defined
configuration (custom categories, save debounce window, storage locations)
from JSON files and environment variables.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .models import BASE_PAYMENT_METHODS, FALLBACK_CATEGORY, ZERO, Category, parse_amount

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent

# Seeded for a brand-new ledger. Budgets are monthly limits on personal spend.
DEFAULT_CATEGORIES: Tuple[Tuple[str, int], ...] = (
    ("Food", 500),
    ("Transport", 150),
    ("Housing", 1500),
    ("Leisure", 300),
    ("Health", 200),
    ("Other", 100),
)

DEFAULT_SAVE_DELAY = 0.75


@dataclass
class AppConfig:
    categories: List[Category] = field(
        default_factory=lambda: [Category(n, parse_amount(b)) for n, b in DEFAULT_CATEGORIES]
    )
    fallback_category: str = FALLBACK_CATEGORY
    payment_methods: Tuple[str, ...] = BASE_PAYMENT_METHODS
    save_delay: float = DEFAULT_SAVE_DELAY
    data_dir: Path = PROJECT_ROOT / "data"
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'finance_ledger.db'}"

    def default_categories(self) -> List[Category]:
        return [Category(c.name, c.budget) for c in self.categories]

    @staticmethod
    def load(config_path: Optional[str | Path] = None) -> "AppConfig":
        """Load config from JSON if provided, else use defaults.

        JSON format:
        {
          "categories": [{"name": "Food", "budget": 400}],
          "save_delay": 0.75,
          "data_dir": "data",
          "database_url": "sqlite:///finance_ledger.db"
        }

        ``FINANCE_LEDGER_DATA_DIR``, ``FINANCE_LEDGER_DATABASE_URL`` and
        ``FINANCE_LEDGER_SAVE_DELAY`` override the file.
        """

        cfg = AppConfig()

        if config_path:
            p = Path(config_path)
            if p.exists():
                with p.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    if isinstance(raw.get("categories"), list):
                        cats = [
                            Category(name=str(c["name"]).strip(), budget=max(parse_amount(c.get("budget")), ZERO))
                            for c in raw["categories"]
                            if isinstance(c, dict) and str(c.get("name") or "").strip()
                        ]
                        if cats:
                            cfg.categories = cats
                    if "save_delay" in raw:
                        cfg.save_delay = _to_delay(raw["save_delay"], cfg.save_delay)
                    if raw.get("data_dir"):
                        cfg.data_dir = _resolve_path(raw["data_dir"])
                    if raw.get("database_url"):
                        cfg.database_url = str(raw["database_url"])

        env_dir = os.getenv("FINANCE_LEDGER_DATA_DIR")
        if env_dir:
            cfg.data_dir = _resolve_path(env_dir)
        env_db = os.getenv("FINANCE_LEDGER_DATABASE_URL")
        if env_db:
            cfg.database_url = env_db
        env_delay = os.getenv("FINANCE_LEDGER_SAVE_DELAY")
        if env_delay:
            cfg.save_delay = _to_delay(env_delay, cfg.save_delay)
        return cfg


def _to_delay(value, default: float) -> float:
    try:
        delay = float(value)
    except (TypeError, ValueError):
        return default
    return delay if delay >= 0 else default


def _resolve_path(value) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return PROJECT_ROOT / path

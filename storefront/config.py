from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=ROOT_DIR / ".env")

STOCK_REJECT = "reject"
STOCK_CLAMP = "clamp"


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int) -> int:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return int(v)


@dataclass(frozen=True)
class Settings:
    currency: str = "AED"
    price_decimals: int = 0
    stock_policy: str = STOCK_REJECT
    cart_db_path: str = str(ROOT_DIR / "data" / "carts.db")
    seed_path: str = str(ROOT_DIR / "data" / "seed.json")
    log_level: str = "INFO"


def load_settings() -> Settings:
    policy = (_get_env("STOCK_POLICY", default=STOCK_REJECT) or STOCK_REJECT).lower()
    if policy not in (STOCK_REJECT, STOCK_CLAMP):
        raise RuntimeError(f"STOCK_POLICY must be '{STOCK_REJECT}' or '{STOCK_CLAMP}', got '{policy}'")

    decimals = _get_int("PRICE_DECIMALS", "DECIMALS", default=0)
    if decimals < 0:
        raise RuntimeError("PRICE_DECIMALS must be >= 0")

    return Settings(
        currency=_get_env("CURRENCY", default="AED") or "AED",
        price_decimals=decimals,
        stock_policy=policy,
        cart_db_path=_get_env("CART_DB_PATH", "DB_PATH", default=Settings.cart_db_path) or Settings.cart_db_path,
        seed_path=_get_env("SEED_PATH", default=Settings.seed_path) or Settings.seed_path,
        log_level=(_get_env("LOG_LEVEL", default="INFO") or "INFO").upper(),
    )


def setup_logging(cfg: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


settings = load_settings()

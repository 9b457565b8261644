import json
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .schemas import InventoryConfig, StockThresholds

# --- Base Directory ---
BASE_DIR = Path(__file__).resolve().parent.parent

# --- Load Environment Variables ---
load_dotenv(BASE_DIR / ".env")

# --- Path Configuration ---
DATA_DIR = BASE_DIR / os.getenv("DATA_DIR", "data")
OUTPUT_DIR = BASE_DIR / os.getenv("OUTPUT_DIR", "output")
LOG_DIR = BASE_DIR / os.getenv("LOG_DIR", "logs")
CONFIG_FILE = DATA_DIR / os.getenv("CONFIG_FILENAME", "config.json")

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Filename Configuration ---
ITEMS_FILENAME = os.getenv("ITEMS_FILENAME", "items.json")
SNAPSHOTS_FILENAME = os.getenv("SNAPSHOTS_FILENAME", "snapshots.json")
TRANSACTIONS_FILENAME = os.getenv("TRANSACTIONS_FILENAME", "transactions.json")
DIFF_FILENAME_BASE = os.getenv("DIFF_FILENAME", "snapshot_diff")

# --- Webhook ---
WEBHOOK_URL = os.getenv("WEBHOOK_URL")
SAVE_JSON_OUTPUT = os.getenv("SAVE_JSON_OUTPUT", "true").lower() in ("1", "true", "yes")

# --- Shared Business Logic ---
DEFAULT_UNIT = os.getenv("DEFAULT_UNIT", "mg")

# Hard cap on how many diff rows are displayed or written at once.
DIFF_ROW_LIMIT = int(os.getenv("DIFF_ROW_LIMIT", "1000"))

DEFAULT_THRESHOLDS = {
    "outOfStock": int(os.getenv("STOCK_OUT_OF_STOCK", "0")),
    "nearlyOut": int(os.getenv("STOCK_NEARLY_OUT", "10")),
    "lowStock": int(os.getenv("STOCK_LOW_STOCK", "25")),
    "goodStock": int(os.getenv("STOCK_GOOD_STOCK", "50")),
}

# Test and system products that never belong in the tracked inventory.
DEFAULT_EXCLUSIONS = [
    "OATH-A1-TEST",
    "a1 test",
    "OATH-GH-FRAGMENT-176-191-5MG",
    "OATH-GIFT-CARD",
    "gift card",
    "OATH-NAD+-1000MG",
    "OATH-SS-31-10MG",
    "OATH-TESA-IPA-10-5",
]


def default_config() -> InventoryConfig:
    """Builds the configuration object from environment-driven defaults."""
    return InventoryConfig(
        exclusions=list(DEFAULT_EXCLUSIONS),
        thresholds=StockThresholds(**DEFAULT_THRESHOLDS),
        default_unit=DEFAULT_UNIT,
        diff_row_limit=DIFF_ROW_LIMIT,
    )


def load_config(path: Optional[Path] = None) -> InventoryConfig:
    """
    Loads the saved configuration file and overlays it on the defaults.
    Keys missing from the file keep their default values.
    """
    config_path = path or CONFIG_FILE
    config = default_config()
    if not config_path.exists():
        return config

    with open(config_path, encoding="utf-8") as f:
        saved = json.load(f)

    merged = config.model_dump(by_alias=True)
    merged.update(saved)
    return InventoryConfig.model_validate(merged)


def save_config(config: InventoryConfig, path: Optional[Path] = None) -> Path:
    """Persists the configuration object as JSON."""
    config_path = path or CONFIG_FILE
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config.model_dump(by_alias=True), f, indent=2)
    return config_path

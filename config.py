"""
config.py — Loads preferences.yaml and environment variables.
Provides typed access to all configuration.
"""

import os
import re
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent

# Load preferences.yaml
PREFERENCES_PATH = Path(os.getenv("INTERNSHIP_HUNTER_PREFERENCES", PROJECT_ROOT / "preferences.yaml"))
with open(PREFERENCES_PATH, "r") as f:
    _prefs = yaml.safe_load(f)


# --- Candidate ---
RESUME_FILE = PROJECT_ROOT / _prefs["candidate"]["resume_file"]

# --- Storage ---
DATA_DIR = PROJECT_ROOT / _prefs["storage"]["data_dir"]

# --- Plugins ---
PLUGINS = _prefs["plugins"]
INTERNSHALA = PLUGINS["internshala"]
NAUKRI = PLUGINS["naukri"]

# --- AI ---
AI = _prefs["ai"]
AI_MODEL = AI["model"]
AI_MAX_TOKENS = AI["max_tokens"]
AI_MAX_ATTEMPTS = AI["max_attempts"]
AI_BASE_DELAY = AI["base_delay"]
AI_POLITENESS_DELAY = AI["politeness_delay"]
AI_WEB_SEARCH_MAX_USES = AI["web_search_max_uses"]

# --- Pipeline ---
PIPELINE_POLITENESS_DELAY = _prefs["pipeline"]["politeness_delay"]

# --- API Keys & Secrets (from .env) ---
# One or more keys separated by commas, semicolons or whitespace.
ANTHROPIC_API_KEYS = os.getenv("ANTHROPIC_API_KEYS", "") or os.getenv("ANTHROPIC_API_KEY", "")

# --- Logging ---
LOG_DIR = PROJECT_ROOT / "logs"
LOG_FILE = LOG_DIR / "internship_hunter.log"


def parse_api_keys(raw: str) -> list[str]:
    """Split a delimited credential string into an ordered list of keys."""
    if not raw:
        return []
    return [key for key in re.split(r"[,;\s]+", raw) if key]


def validate_config():
    """Check that critical configuration is present."""
    warnings = []

    if not parse_api_keys(ANTHROPIC_API_KEYS):
        warnings.append("ANTHROPIC_API_KEYS is not set — AI enrichment will be disabled")

    if not RESUME_FILE.exists():
        warnings.append(f"Resume file not found at {RESUME_FILE} — matches will use 'No Resume'")

    return warnings

import tomllib
import shutil
import re
import secrets
from pathlib import Path
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv
import os

CONFIG_DIR = Path.home() / ".lessonbook"
CONFIG_PATH = CONFIG_DIR / "config.toml"
PROJECT_CONFIG_EXAMPLE = Path(__file__).parent / "config.toml"

DEFAULT_SESSION_MINUTES = 720
DEFAULT_TRIAL_DAYS = 14
DEFAULT_SCHOOL_DAYS = [1, 2, 3, 4, 5]


def _school_days(value: Any) -> List[int]:
    if not isinstance(value, list):
        return list(DEFAULT_SCHOOL_DAYS)
    days = sorted({int(day) for day in value if str(day).isdigit() and 1 <= int(day) <= 5})
    return days or list(DEFAULT_SCHOOL_DAYS)


def load_config() -> Dict[str, Any]:
    """Load config from ~/.lessonbook/config.toml, copy example if missing, load .env overrides."""
    load_dotenv()
    if not CONFIG_PATH.exists():
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        shutil.copy(PROJECT_CONFIG_EXAMPLE, CONFIG_PATH)
    with open(CONFIG_PATH, "rb") as f:
        config = tomllib.load(f)

    auth_cfg = config.get("auth", {})
    config["auth"] = {
        "session_minutes": int(os.getenv(
            "LESSONBOOK_SESSION_MINUTES",
            auth_cfg.get("session_minutes", DEFAULT_SESSION_MINUTES),
        )),
        "secret_key": os.getenv("LESSONBOOK_SECRET_KEY", auth_cfg.get("secret_key", "")) or "",
    }
    family_cfg = config.get("family", {})
    config["family"] = {
        "trial_days": int(os.getenv(
            "LESSONBOOK_TRIAL_DAYS",
            family_cfg.get("trial_days", DEFAULT_TRIAL_DAYS),
        )),
        "default_school_days": _school_days(family_cfg.get("default_school_days")),
    }
    return config


def get_config_value(section: str, key: str, default: Optional[Any] = None) -> Any:
    """Get nested config value, e.g., get_config_value('auth', 'session_minutes')."""
    config = load_config()
    value = config.get(section, {}).get(key, default)
    return value


def set_auth_secret(secret_key: str) -> None:
    """Persist the session signing secret into config.toml."""
    load_config()
    text = CONFIG_PATH.read_text()
    if "[auth]" not in text:
        text = text.rstrip() + f'\n\n[auth]\nsecret_key = "{secret_key}"\n'
        CONFIG_PATH.write_text(text)
        return

    def update_section(match: re.Match) -> str:
        section = match.group(1)
        rest = match.group(2)
        if re.search(r"^secret_key\s*=", section, flags=re.MULTILINE):
            section = re.sub(
                r"^secret_key\s*=.*$",
                f'secret_key = "{secret_key}"',
                section,
                flags=re.MULTILINE,
            )
        else:
            lines = section.rstrip().splitlines()
            insert_at = 1 if lines else 0
            lines.insert(insert_at, f'secret_key = "{secret_key}"')
            section = "\n".join(lines) + "\n\n"
        return section + rest

    text = re.sub(r"(?ms)(^\[auth\].*?)(^\[|\Z)", update_section, text, count=1)
    CONFIG_PATH.write_text(text)


def ensure_auth_secret() -> str:
    """Return the session secret, generating and saving one on first use."""
    secret_key = get_config_value("auth", "secret_key")
    if secret_key:
        return secret_key
    secret_key = secrets.token_hex(32)
    set_auth_secret(secret_key)
    return secret_key

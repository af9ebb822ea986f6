import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from the project root .env (non-sensitive
# settings such as the index URL or a pinned Suricata version). Variables
# already present in the environment win.
ROOT_DIR = Path(__file__).parent

env_file = ROOT_DIR / '.env'
if env_file.exists():
    load_dotenv(env_file, override=False)

DEFAULT_INDEX_URL = "https://www.openinfosecfoundation.org/rules/index.yaml"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str) -> Optional[float]:
    value = os.environ.get(name)
    if not value:
        return None
    return float(value)


def get_config():
    return Config(
        source_index_url=os.environ.get("SOURCE_INDEX_URL", DEFAULT_INDEX_URL),
        cache_min_age_secs=int(os.environ.get("RULESYNC_CACHE_MIN_AGE_SECS", "900")),
        default_source=os.environ.get("RULESYNC_DEFAULT_SOURCE", "et/open"),
        auto_enable_default=_env_bool("RULESYNC_AUTO_ENABLE_DEFAULT", True),
        output_filename=os.environ.get("RULESYNC_OUTPUT_FILENAME", "suricata.rules"),
        suricata_version=os.environ.get("RULESYNC_SURICATA_VERSION", "7.0.0"),
        http_timeout=_env_float("RULESYNC_HTTP_TIMEOUT"),
        user_mode=_env_bool("RULESYNC_USER_MODE", False),
        log_level=os.environ.get("RULESYNC_LOG_LEVEL", "INFO").upper(),
    )


@dataclass
class Config:
    """Configuration settings for the rule synchronizer."""
    source_index_url: str = DEFAULT_INDEX_URL
    # Maximum age, in seconds, of a cached index or archive before it is re-fetched
    cache_min_age_secs: int = 900
    default_source: str = "et/open"
    # Enable default_source alongside the first user-enabled source
    auto_enable_default: bool = True
    output_filename: str = "suricata.rules"
    # Substituted for %(__version__)s in source URL templates
    suricata_version: str = "7.0.0"
    http_timeout: Optional[float] = None
    user_mode: bool = False
    log_level: str = "INFO"

"""Configuration management for CloakWatch."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Set

import yaml
from dotenv import load_dotenv

from .utils.allowlist import read_allowlist
from .utils.urls import DEFAULT_VOLATILE_QUERY_PARAMS

logger = logging.getLogger(__name__)


# PaaS/CDN suffixes that host throwaway scam pages but are missing from the
# private section of the public suffix list.
DEFAULT_HOSTING_SUFFIXES: list[str] = [
    "web.core.windows.net",
    "surge.sh",
    "glitch.me",
]

DEFAULT_SEARCH_SITES: list[str] = [
    "https://www.chaseafterinfo.com/web?q=",
    "https://www.wefindalot.com/web?q=",
    "https://www.lookupsmart.com/web?q=",
    "https://www.find-info.co/serp?q=",
    "https://www.bestoftoday.co/web?q=",
]

DEFAULT_SEARCH_TERMS: list[str] = [
    "my account login online",
    "login",
    "Free Recipes - Cooking Recipes - Dinner Ideas For Tonight",
    "account online",
    "how to check your account online",
    "online to account",
    "Online-Account-Login",
    "my account login",
    "www facebook com login",
    "amazon prime",
]

# Ad-serving endpoint of an adult ad network, queried from the publisher page
DEFAULT_AD_NETWORK_FEED_URL = (
    "https://www.pornhub.com/_xa/ads_batch?data=%5B%7B%22spots%22%3A%5B%7B%22zone%22%3A30781%7D%5D%7D%5D"
)
DEFAULT_AD_NETWORK_REFERER = "https://www.pornhub.com/"

DEFAULT_TYPOSQUAT_DOMAINS: list[str] = [
    # Facebook
    "facebaak.com",
    "facebiik.com",
    "fac3book.com",
    "faceb00k.com",
    "afcebook.com",
    "faicebook.com",
    "fucebook.com",
    "facbeook.com",
    "faceboko.com",
    "faceblok.com",
    # Gmail
    "gmaip.com",
    "gmai.com",
    "gmaol.com",
    "ggmail.com",
    "gmaii.com",
    "gmsail.com",
    "ygmail.com",
    "gmalil.com",
    # Google
    "googlo.com",
    "goorle.com",
    "googls.com",
    "ygoogle.com",
    "gopogle.com",
    "googpe.com",
    "goodgle.com",
    "geogle.com",
    "goigle.com",
    # YouTube
    "yotube.com",
    "youutbe.com",
    "outube.com",
    "yautube.com",
    "youtubo.com",
    "yohtube.com",
    # Twitter
    "twittre.com",
    "twltter.com",
    "twutter.com",
    "fwitter.com",
    "twiyter.com",
    "twittee.com",
]


@dataclass
class Config:
    """Application configuration loaded from environment."""

    # Telegram
    telegram_bot_token: str
    telegram_chat_id: str

    health_host: str = "0.0.0.0"
    health_port: int = 8081
    health_enabled: bool = True

    # Outbound proxy used for redirect resolution and page inspection
    proxy_url: str = ""
    # Posted as data=<json> by the fingerprint_post redirect strategy
    redirect_fingerprint: dict = field(default_factory=dict)

    # Reporting and takedown-check credentials
    netcraft_report_email: str = ""
    netcraft_report_source: str = ""
    urlscan_api_key: str = ""
    crdf_labs_api_key: str = ""
    safebrowsing_api_key: str = ""
    smartscreen_auth_id: str = "6D2E7D9C-1334-4FC2-A549-5EC504F0E8F1"

    # Classification
    classifier_url: str = ""
    classifier_threshold: float = 0.7
    hunter_confidence_threshold: float = 0.98
    save_training_samples: bool = False

    # Loop intervals
    redirect_check_interval: int = 60
    takedown_check_interval: int = 60
    batch_flush_interval: int = 60
    takedown_recheck_hours: float = 4
    takedown_concurrency: int = 10
    crdf_max_per_interval: int = 2

    # Hunting
    hunters_enabled: bool = False
    hunt_interval: int = 60
    hunt_timeout: int = 120

    # Pruning
    prune_interval_hours: float = 24
    prune_inactive_days: int = 5

    # Browser
    browser_headless: bool = True
    navigation_timeout: int = 30

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    config_dir: Path = field(default_factory=lambda: Path("./config"))

    # Loaded lists
    allowlist: Set[str] = field(default_factory=set)

    # Heuristics (override via config/heuristics.yaml)
    hosting_suffixes: list[str] = field(default_factory=lambda: list(DEFAULT_HOSTING_SUFFIXES))
    volatile_query_params: list[str] = field(
        default_factory=lambda: list(DEFAULT_VOLATILE_QUERY_PARAMS)
    )
    search_sites: list[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_SITES))
    search_terms: list[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_TERMS))
    typosquat_domains: list[str] = field(default_factory=lambda: list(DEFAULT_TYPOSQUAT_DOMAINS))

    # Third-party ad network hunting; an empty feed URL disables it
    ad_network_feed_url: str = DEFAULT_AD_NETWORK_FEED_URL
    ad_network_referer: str = DEFAULT_AD_NETWORK_REFERER

    def __post_init__(self):
        """Ensure paths exist and load lists."""
        self.data_dir = Path(self.data_dir)
        self.config_dir = Path(self.config_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        allowlist_path = self.config_dir / "allowlist.txt"
        if allowlist_path.exists():
            self.allowlist = set(self.allowlist) | read_allowlist(allowlist_path)

    @property
    def db_path(self) -> Path:
        return self.data_dir / "cloakwatch.db"

    @property
    def training_dir(self) -> Path:
        return self.data_dir / "training"


def _load_heuristics(config_dir: Path) -> dict:
    """Load heuristic overrides from config/heuristics.yaml (optional)."""
    path = Path(config_dir or ".") / "heuristics.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        logger.warning("Failed to parse heuristics.yaml: %s", exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring heuristics.yaml: top level must be a mapping")
        return {}

    def _coerce_str_list(raw) -> list[str] | None:
        if not isinstance(raw, (list, tuple, set)):
            return None
        items = [str(item).strip() for item in raw if str(item or "").strip()]
        return items or None

    fingerprint = data.get("redirect_fingerprint")
    return {
        "hosting_suffixes": _coerce_str_list(data.get("hosting_suffixes")),
        "volatile_query_params": _coerce_str_list(data.get("volatile_query_params")),
        "search_sites": _coerce_str_list(data.get("search_sites")),
        "search_terms": _coerce_str_list(data.get("search_terms")),
        "typosquat_domains": _coerce_str_list(data.get("typosquat_domains")),
        "redirect_fingerprint": fingerprint if isinstance(fingerprint, dict) else None,
    }


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def load_config() -> Config:
    """Load configuration from environment variables."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))
    heuristics = _load_heuristics(config_dir)
    overrides = {key: value for key, value in heuristics.items() if value is not None}

    return Config(
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID", ""),
        health_host=os.getenv("HEALTH_HOST", "0.0.0.0"),
        health_port=int(os.getenv("HEALTH_PORT", "8081")),
        health_enabled=_env_bool("HEALTH_ENABLED", "true"),
        proxy_url=os.getenv("PROXY_URL", ""),
        netcraft_report_email=os.getenv("NETCRAFT_REPORT_EMAIL", ""),
        netcraft_report_source=os.getenv("NETCRAFT_REPORT_SOURCE", ""),
        urlscan_api_key=os.getenv("URLSCAN_API_KEY", ""),
        crdf_labs_api_key=os.getenv("CRDF_LABS_API_KEY", ""),
        safebrowsing_api_key=os.getenv("SAFEBROWSING_API_KEY", ""),
        smartscreen_auth_id=os.getenv(
            "SMARTSCREEN_AUTH_ID", "6D2E7D9C-1334-4FC2-A549-5EC504F0E8F1"
        ),
        classifier_url=os.getenv("CLASSIFIER_URL", ""),
        classifier_threshold=float(os.getenv("CLASSIFIER_THRESHOLD", "0.7")),
        hunter_confidence_threshold=float(os.getenv("HUNTER_CONFIDENCE_THRESHOLD", "0.98")),
        save_training_samples=_env_bool("SAVE_TRAINING_SAMPLES", "false"),
        redirect_check_interval=int(os.getenv("REDIRECT_CHECK_INTERVAL_SECONDS", "60")),
        takedown_check_interval=int(os.getenv("TAKEDOWN_CHECK_INTERVAL_SECONDS", "60")),
        batch_flush_interval=int(os.getenv("BATCH_FLUSH_INTERVAL_SECONDS", "60")),
        takedown_recheck_hours=float(os.getenv("TAKEDOWN_RECHECK_HOURS", "4")),
        takedown_concurrency=int(os.getenv("TAKEDOWN_CONCURRENCY", "10")),
        crdf_max_per_interval=int(os.getenv("CRDF_MAX_PER_INTERVAL", "2")),
        hunters_enabled=_env_bool("HUNTERS_ENABLED", "false"),
        hunt_interval=int(os.getenv("HUNT_INTERVAL_SECONDS", "60")),
        hunt_timeout=int(os.getenv("HUNT_TIMEOUT_SECONDS", "120")),
        ad_network_feed_url=os.getenv("AD_NETWORK_FEED_URL", DEFAULT_AD_NETWORK_FEED_URL),
        ad_network_referer=os.getenv("AD_NETWORK_REFERER", DEFAULT_AD_NETWORK_REFERER),
        prune_interval_hours=float(os.getenv("PRUNE_INTERVAL_HOURS", "24")),
        prune_inactive_days=int(os.getenv("PRUNE_INACTIVE_DAYS", "5")),
        browser_headless=_env_bool("BROWSER_HEADLESS", "true"),
        navigation_timeout=int(os.getenv("NAVIGATION_TIMEOUT", "30")),
        data_dir=Path(os.getenv("DATA_DIR", "./data")),
        config_dir=config_dir,
        **overrides,
    )


def validate_config(config: Config) -> list[str]:
    """Validate required configuration and return list of error messages."""
    errors: list[str] = []
    if not (config.telegram_bot_token or "").strip():
        errors.append("TELEGRAM_BOT_TOKEN is required")
    if not (config.telegram_chat_id or "").strip():
        errors.append("TELEGRAM_CHAT_ID is required")
    if not (config.classifier_url or "").strip():
        errors.append("CLASSIFIER_URL is required")

    for name, value in (
        ("CLASSIFIER_THRESHOLD", config.classifier_threshold),
        ("HUNTER_CONFIDENCE_THRESHOLD", config.hunter_confidence_threshold),
    ):
        if not 0.0 <= value <= 1.0:
            errors.append(f"{name} must be between 0 and 1 (got {value})")

    if config.crdf_max_per_interval < 1:
        errors.append("CRDF_MAX_PER_INTERVAL must be at least 1")

    if not config.safebrowsing_api_key:
        logger.info("No SAFEBROWSING_API_KEY configured; SafeBrowsing takedown checks disabled")
    if not config.netcraft_report_email:
        logger.info("No NETCRAFT_REPORT_EMAIL configured; Netcraft reports will be anonymous")

    return errors

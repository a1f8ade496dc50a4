"""
Configuration settings for the Arb Seeker bot.
Uses pydantic-settings for validation and environment variable loading.
"""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SportTier(str, Enum):
    """Polling tiers, by how fast prices move."""
    TIER_1 = "TIER_1"  # NBA, AFL, NRL
    TIER_2 = "TIER_2"  # Cricket, Rugby Union
    TIER_3 = "TIER_3"  # Futures/Outrights


# The Odds API sport keys
SPORT_KEYS: dict[str, str] = {
    "NBA": "basketball_nba",
    "AFL": "aussierules_afl",
    "NRL": "rugbyleague_nrl",
    "CRICKET": "cricket",
    "RUGBY_UNION": "rugbyunion",
}

SPORT_TIERS: dict[str, SportTier] = {
    "basketball_nba": SportTier.TIER_1,
    "aussierules_afl": SportTier.TIER_1,
    "rugbyleague_nrl": SportTier.TIER_1,
    "cricket": SportTier.TIER_2,
    "rugbyunion": SportTier.TIER_2,
}

# Odds API sport key -> Betfair event type id
BETFAIR_EVENT_TYPE_IDS: dict[str, str] = {
    "basketball_nba": "7522",
    "aussierules_afl": "61420",
    "rugbyleague_nrl": "1477",
    "cricket": "4",
    "rugbyunion": "5",
}

# Seconds between scans per tier
POLLING_INTERVALS: dict[SportTier, int] = {
    SportTier.TIER_1: 120,       # 2 minutes
    SportTier.TIER_2: 600,       # 10 minutes
    SportTier.TIER_3: 21600,     # 6 hours
}


def sports_for_tier(tier: SportTier) -> list[str]:
    return [key for key in SPORT_KEYS.values() if SPORT_TIERS.get(key) == tier]


def get_betfair_event_type_id(sport_key: str) -> Optional[str]:
    return BETFAIR_EVENT_TYPE_IDS.get(sport_key)


class OddsAPISettings(BaseSettings):
    """The Odds API (bookmaker prices)."""

    # ODDS_API_KEY, ODDS_BASE_URL, ...
    model_config = SettingsConfigDict(env_prefix="ODDS_", env_file=".env", extra="ignore")

    api_key: str = Field(default="", description="The Odds API key")
    base_url: str = "https://api.the-odds-api.com/v4"
    regions: list[str] = Field(default_factory=lambda: ["au"])  # Australian bookmakers
    markets: list[str] = Field(default_factory=lambda: ["h2h"])  # Head-to-head
    lookahead_hours: float = 24.0  # Later games have thin Betfair liquidity


class BetfairSettings(BaseSettings):
    """Betfair Exchange API."""

    model_config = SettingsConfigDict(env_prefix="BETFAIR_", env_file=".env", extra="ignore")

    app_key: str = Field(default="", description="Betfair application key")
    username: str = ""
    password: str = Field(default="", description="API password, not the website one")

    login_url: str = "https://identitysso.betfair.com/api/login"
    betting_url: str = "https://api.betfair.com/exchange/betting/json-rpc/v1"
    account_url: str = "https://api.betfair.com/exchange/account/json-rpc/v1"

    session_lifetime_seconds: int = 24 * 60 * 60
    refresh_margin_seconds: int = 60 * 60  # Refresh once within an hour of expiry


class TelegramSettings(BaseSettings):
    """Telegram alert delivery."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", env_file=".env", extra="ignore")

    bot_token: str = ""
    chat_id: str = ""


class StakeSettings(BaseSettings):
    """Grey Man stake range (bookmaker back stake)."""

    model_config = SettingsConfigDict(env_prefix="GREY_MAN_", env_file=".env", extra="ignore")

    min_stake: int = 280
    max_stake: int = 420


class DetectorSettings(BaseSettings):
    """Single-side arb detection thresholds."""

    max_implied_probability: float = 0.98  # ~2% guaranteed margin
    min_lay_liquidity: float = 20.0


class GateSettings(BaseSettings):
    """Validation/dedup gate."""

    min_profit_margin: float = 0.02  # 2%
    retention_seconds: int = 2 * 60 * 60  # Re-alert the same arb after 2 hours


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore"
    )

    # Use canned opportunities instead of live APIs
    mock_mode: bool = False

    # Debug settings
    log_level: str = "INFO"
    log_json: bool = False

    # Key/value store (sessions, processed markers)
    store_path: str = "data/arbseeker.db"

    # Sub-settings
    odds_api: OddsAPISettings = Field(default_factory=OddsAPISettings)
    betfair: BetfairSettings = Field(default_factory=BetfairSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    stake: StakeSettings = Field(default_factory=StakeSettings)
    detector: DetectorSettings = Field(default_factory=DetectorSettings)
    gate: GateSettings = Field(default_factory=GateSettings)

    def missing_required(self) -> list[str]:
        """Names of required environment variables that are not set."""
        required = {
            "ODDS_API_KEY": self.odds_api.api_key,
            "TELEGRAM_BOT_TOKEN": self.telegram.bot_token,
            "TELEGRAM_CHAT_ID": self.telegram.chat_id,
            "BETFAIR_APP_KEY": self.betfair.app_key,
            "BETFAIR_USERNAME": self.betfair.username,
            "BETFAIR_PASSWORD": self.betfair.password,
        }
        return [name for name, value in required.items() if not value]

    def validate_required(self) -> None:
        """Raise ValueError if any credential is missing."""
        missing = self.missing_required()
        if missing:
            raise ValueError(f"Missing required settings: {', '.join(missing)}")


# Global settings instance
settings = Settings()

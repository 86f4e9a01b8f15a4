import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from errors import ParseError
from timestamps import parse_timezone

logger = logging.getLogger("settings")

DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class PollConfig:
    """
    Tuning for one poll session.

    Defaults reproduce the reference behaviour: 5 attempts, 10 seconds
    between attempts, messages older than 3 minutes are stale, and each
    attempt reads the 10 newest messages.
    """

    max_attempts: int = 5
    retry_delay: float = 10.0
    recency_window_minutes: float = 3
    fetch_size: int = 10
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")
        if self.fetch_size < 1:
            raise ValueError("fetch_size must be at least 1")


@dataclass(frozen=True)
class Settings:
    api_url: Optional[str] = None
    session_token: Optional[str] = None
    account_id: Optional[str] = None
    timezone: str = DEFAULT_TIMEZONE
    log_level: str = "INFO"
    poll: PollConfig = field(default_factory=PollConfig)


def _read_number(env: Mapping[str, str], key: str, default, cast=int, minimum=0):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"Invalid {key}={raw!r}, using default of {default}")
        return default
    # Written this way so that "nan" is rejected too
    if not value >= minimum:
        logger.warning(f"Invalid {key}={raw!r} (minimum is {minimum}), using default of {default}")
        return default
    return value


def validate_timezone(value: str) -> str:
    """
    Check a timezone setting at startup.

    Out-of-range offsets are rejected. Values that are not in ``UTC±HH:MM``
    form are kept, and naive timestamps are then read in host local time.
    """
    value = (value or DEFAULT_TIMEZONE).strip()
    if parse_timezone(value) is None:
        logger.warning(f"Unrecognised TIMEZONE {value!r}, naive timestamps will use local time")
    return value


def load_settings(env_file: Optional[str] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Read configuration from the environment, after loading a .env file.

    Args:
        env_file: Path of the .env file, defaults to the one python-dotenv finds
        environ: Mapping to read instead of os.environ

    Returns:
        Immutable settings for the lifetime of the process

    Raises:
        ParseError: TIMEZONE has an out-of-range offset
    """
    if environ is None:
        load_dotenv(env_file)
        environ = os.environ

    try:
        timezone = validate_timezone(environ.get("TIMEZONE", DEFAULT_TIMEZONE))
    except ParseError as e:
        raise ParseError(f"Invalid TIMEZONE setting: {e}") from e

    poll = PollConfig(
        max_attempts=_read_number(environ, "MAIL_MAX_ATTEMPTS", PollConfig.max_attempts, minimum=1),
        retry_delay=_read_number(environ, "MAIL_RETRY_DELAY", PollConfig.retry_delay, float),
        recency_window_minutes=_read_number(environ, "MAIL_RECENCY_MINUTES",
                                            PollConfig.recency_window_minutes, float),
        fetch_size=_read_number(environ, "MAIL_FETCH_SIZE", PollConfig.fetch_size, minimum=1),
        timezone=timezone,
    )

    return Settings(
        api_url=environ.get("MAIL_API_URL") or None,
        session_token=environ.get("MAIL_SESSION_TOKEN") or None,
        account_id=environ.get("MAIL_ACCOUNT_ID") or None,
        timezone=timezone,
        log_level=environ.get("LOG_LEVEL", "INFO"),
        poll=poll,
    )

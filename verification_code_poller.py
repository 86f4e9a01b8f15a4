import argparse
import json
import logging
import math
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from code_extractor import CodeExtractor, find_latest_verification_code
from errors import MailboxError
from mailbox_api import MailboxAPI, MessageFetcher
from messages import VerificationResult, rank_messages
from settings import PollConfig, Settings, load_settings, validate_timezone
from timestamps import age_seconds, is_within_minutes, normalize_timestamp, now_ms

logger = logging.getLogger("verification_code_poller")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class PollState(Enum):
    POLLING = "polling"
    FOUND = "found"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class PollOutcome:
    """Terminal state of a poll session: FOUND with a result, or EXHAUSTED."""

    state: PollState
    attempts: int
    result: Optional[VerificationResult] = None

    @property
    def found(self) -> bool:
        return self.state is PollState.FOUND

    def to_dict(self) -> Dict[str, Any]:
        if self.found:
            return {"success": True, "attempts": self.attempts, **self.result.to_dict()}

        return {
            "success": False,
            "error": f"No verification code found within {self.attempts} attempts",
            "attempts": self.attempts,
        }


class VerificationCodePoller:
    """
    Polls an inbox until a fresh verification code shows up or attempts run out.

    Each attempt fetches the newest messages, ranks them by time and only
    trusts a code whose message arrived inside the recency window. Errors
    raised by the fetch capability are not retried: they end the session
    and reach the caller unchanged.
    """

    def __init__(self,
                 fetch_messages: MessageFetcher,
                 config: Optional[PollConfig] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = now_ms,
                 extractor: Optional[CodeExtractor] = None):
        """
        Args:
            fetch_messages: Callable ``(account_id, limit) -> list of Message``
            config: Attempts, delay, window, fetch size and timezone
            sleep: Called with the delay in seconds between attempts
            clock: Returns the current time in epoch milliseconds
            extractor: Code extractor, defaults to the built-in phrases
        """
        self.fetch_messages = fetch_messages
        self.config = config or PollConfig()
        self.sleep = sleep
        self.clock = clock
        self.extractor = extractor
        self.state = PollState.POLLING
        self.attempt = 0

    def _is_recent(self, value, now: float) -> bool:
        return is_within_minutes(value, self.config.recency_window_minutes,
                                 self.config.timezone, now=now)

    def _attempt(self, account_id: Union[int, str]) -> Optional[VerificationResult]:
        config = self.config
        window = config.recency_window_minutes

        messages = self.fetch_messages(account_id, config.fetch_size)
        if not messages:
            logger.info("No messages in this account yet")
            return None

        ranked = rank_messages(messages, config.timezone)
        latest = ranked[0]
        now = self.clock()
        latest_ts = normalize_timestamp(latest.create_time, config.timezone)
        logger.info(f"Latest message time: {latest.create_time} (ts={latest_ts}), "
                    f"{age_seconds(latest.create_time, config.timezone, now=now)}s ago")

        if math.isnan(latest_ts):
            logger.warning("Latest message time could not be parsed, retrying")
            return None

        if not self._is_recent(latest.create_time, now):
            logger.info(f"Latest message is older than {window} minutes, "
                        f"the code has probably not arrived yet")
            return None

        result = find_latest_verification_code(ranked, self.extractor)
        if result is None:
            logger.info("No verification code email found")
            return None

        if not self._is_recent(result.time, now):
            result_ts = normalize_timestamp(result.time, config.timezone)
            logger.info(f"Verification email time {result.time} (ts={result_ts}) "
                        f"is older than {window} minutes")
            return None

        return result

    def poll(self, account_id: Union[int, str]) -> PollOutcome:
        """
        Run one poll session.

        Args:
            account_id: Mailbox account to read

        Returns:
            FOUND with the verification result, or EXHAUSTED after max_attempts

        Raises:
            TransportError, ProviderError: Propagated from the fetch capability
        """
        config = self.config
        self.state = PollState.POLLING
        self.attempt = 1

        while True:
            logger.info(f"Fetching verification code... "
                        f"(attempt {self.attempt}/{config.max_attempts})")

            result = self._attempt(account_id)
            if result is not None:
                self.state = PollState.FOUND
                logger.info(f"Found verification code {result.code} "
                            f"from {result.sender}, received {result.time}: {result.subject}")
                return PollOutcome(PollState.FOUND, self.attempt, result)

            if self.attempt >= config.max_attempts:
                break

            logger.info(f"Retrying in {config.retry_delay:g}s")
            self.sleep(config.retry_delay)
            self.attempt += 1

        self.state = PollState.EXHAUSTED
        logger.warning(f"No verification code from the last {config.recency_window_minutes:g} "
                       f"minutes found within {config.max_attempts} attempts")
        return PollOutcome(PollState.EXHAUSTED, self.attempt)


def build_poller(settings: Settings, api: Optional[MailboxAPI] = None) -> VerificationCodePoller:
    api = api or MailboxAPI(base_url=settings.api_url, token=settings.session_token)
    return VerificationCodePoller(api.as_fetcher(), config=settings.poll)


def get_verification_code(account_id: Union[int, str],
                          settings: Optional[Settings] = None,
                          api: Optional[MailboxAPI] = None) -> Dict[str, Any]:
    """
    High-level function to wait for the latest verification code of an account.

    Args:
        account_id: Mailbox account to read
        settings: Loaded configuration, read from the environment when omitted
        api: Mailbox client, built from settings when omitted

    Returns:
        Dict with the code and message details on success, or an error entry
    """
    settings = settings or load_settings()
    outcome = build_poller(settings, api).poll(account_id)
    return outcome.to_dict()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def _override_poll(settings: Settings, args: argparse.Namespace) -> Settings:
    poll = settings.poll
    changes = {}
    if args.attempts is not None:
        changes["max_attempts"] = args.attempts
    if args.delay is not None:
        changes["retry_delay"] = args.delay
    if args.window is not None:
        changes["recency_window_minutes"] = args.window
    if args.timezone:
        changes["timezone"] = validate_timezone(args.timezone)

    return replace(
        settings,
        session_token=args.token or settings.session_token,
        timezone=changes.get("timezone", settings.timezone),
        poll=replace(poll, **changes),
    )


def run_cli(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point: poll once, or serve the HTTP endpoint."""
    parser = argparse.ArgumentParser(description="Mailbox verification code poller")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    poll_parser = subparsers.add_parser("poll", help="Wait for the latest verification code")
    poll_parser.add_argument("--account-id", help="Mailbox account id (default: MAIL_ACCOUNT_ID)")
    poll_parser.add_argument("--token", help="Session token (default: MAIL_SESSION_TOKEN)")
    poll_parser.add_argument("--timezone", help="Timezone of naive timestamps, e.g. UTC+08:00")
    poll_parser.add_argument("--attempts", type=int, help="Maximum number of attempts")
    poll_parser.add_argument("--delay", type=float, help="Seconds between attempts")
    poll_parser.add_argument("--window", type=float, help="Recency window in minutes")

    server_parser = subparsers.add_parser("server", help="Run the web server")
    server_parser.add_argument("--host", default="127.0.0.1", help="Server host")
    server_parser.add_argument("--port", type=int, default=5000, help="Server port")
    server_parser.add_argument("--debug", action="store_true", help="Run in debug mode")

    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings.log_level)

    if args.command == "poll":
        try:
            settings = _override_poll(settings, args)
        except ValueError as e:
            parser.error(str(e))
        account_id = args.account_id or settings.account_id
        if not account_id:
            parser.error("an account id is required (--account-id or MAIL_ACCOUNT_ID)")
        if not settings.session_token:
            parser.error("a session token is required (--token or MAIL_SESSION_TOKEN)")

        try:
            result = get_verification_code(account_id, settings=settings)
        except MailboxError as e:
            logger.error(f"Polling aborted: {e}")
            print(json.dumps({"success": False, "error": str(e)}, indent=2, ensure_ascii=False))
            return 2

        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0 if result.get("success") else 1

    if args.command == "server":
        from verification_server import create_app

        app = create_app(settings)
        logger.info(f"Starting server on http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=args.debug)
        return 0

    parser.print_help()
    return 1


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()

import logging
import os
from typing import Any, Callable, Dict, List, Optional, Union

import requests

from errors import AuthenticationError, ParseError, ProviderError, TransportError
from messages import Message

logger = logging.getLogger("mailbox_api")

DEFAULT_API_URL = "https://mail.sohua.cc/api"

MessageFetcher = Callable[[Union[int, str], int], List[Message]]


class MailboxAPI:
    """
    A client for reading the inbox of an account hosted by the mailbox provider.
    Requests are authenticated with a session token obtained by logging into
    the provider's web console.
    """

    def __init__(self,
                 base_url: Optional[str] = None,
                 token: Optional[str] = None,
                 timeout: float = 15):
        """
        Initialize the mailbox client.

        Args:
            base_url: API root, defaults to MAIL_API_URL or the public endpoint
            token: Session token sent as the Authorization header
            timeout: Request timeout in seconds
        """
        self.base_url = (base_url or os.environ.get("MAIL_API_URL") or DEFAULT_API_URL).rstrip("/")
        self.token = token or os.environ.get("MAIL_SESSION_TOKEN")
        self.timeout = timeout

    def _decode(self, response: requests.Response) -> Dict[str, Any]:
        if not response.ok:
            raise TransportError(
                f"Failed to get email list. Status code: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(
                f"Email list response is not valid JSON: {e}",
                status_code=response.status_code,
            ) from e

        if not isinstance(payload, dict):
            raise TransportError("Email list response is not a JSON object",
                                 status_code=response.status_code)

        if payload.get("code") != 200:
            raise ProviderError(payload.get("message"), code=payload.get("code"))

        return payload.get("data") or {}

    def fetch_email_list(self, account_id: Union[int, str], size: int = 5) -> List[Message]:
        """
        Get the most recent messages of an account.

        Args:
            account_id: Provider id of the mailbox account
            size: Maximum number of messages to return

        Returns:
            Messages in the order the provider lists them

        Raises:
            AuthenticationError: No session token is configured
            TransportError: Network failure, non-2xx status or undecodable body
            ProviderError: The provider reported an application error
        """
        if not self.token:
            raise AuthenticationError("Missing session token, log in to the mailbox provider first")

        params = {
            "accountId": account_id,
            "emailId": 0,
            "timeSort": 0,
            "size": size,
            "type": 0,
        }
        headers = {"Authorization": self.token}

        logger.debug(f"Fetching up to {size} messages for account {account_id}")
        try:
            response = requests.get(
                f"{self.base_url}/email/list",
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Network error while fetching email list: {e}") from e

        data = self._decode(response)
        if not isinstance(data, dict):
            raise TransportError("Email list data is not a JSON object",
                                 status_code=response.status_code)
        items = data.get("list") or []

        try:
            return [Message.from_payload(item) for item in items]
        except ParseError as e:
            raise TransportError(f"Unexpected email list payload: {e}",
                                 status_code=response.status_code) from e

    def as_fetcher(self) -> MessageFetcher:
        """Expose the list call as the fetch capability the poller expects."""
        def fetch(account_id: Union[int, str], limit: int) -> List[Message]:
            return self.fetch_email_list(account_id, size=limit)

        return fetch

"""
Chat API Client - HTTP transport to the menu bot backend

Responsibilities:
- Build requests for the process/menu/health endpoints
- Encode navigation context (anchor + previously shown options)
- Decode response bodies without judging them
- Convert transport exceptions into failure descriptors

Design principles:
- Dependency injection (session and config passed in, no globals)
- Never raises for network conditions: every call returns a TransportResult
- No interpretation of payloads (that is the Response Normalizer's job)
"""

import json
import logging
from typing import Any, Dict, Optional, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from menuchat.config import ClientConfig
from menuchat.contracts import (
    MenuOption,
    TransportResult,
    TRANSPORT_NETWORK,
    TRANSPORT_TIMEOUT,
)

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    'Accept': 'application/json',
    'Content-Type': 'application/json',
}


def build_retry_session(max_retries: int) -> requests.Session:
    """
    Build a requests Session with conservative retries.

    Only idempotent GETs are retried, and only on gateway-class statuses.
    raise_on_status=False hands the final response back so its status can
    be classified like any other.
    """
    session = requests.Session()

    retry = Retry(
        total=max_retries,
        connect=max_retries,
        read=False,  # re-raise read timeouts so they surface as Timeout
        status=max_retries,
        backoff_factor=0.5,
        status_forcelist=(502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )

    adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=4)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


class ChatAPIClient:
    """Transport boundary to the menu bot backend"""

    def __init__(
        self,
        config: ClientConfig,
        session: Optional[requests.Session] = None
    ) -> None:
        """
        Initialize client

        Args:
            config: Base URL, timeout and retry settings
            session: Pre-built session (tests inject fakes); built from
                config.max_retries when omitted

        Raises:
            TypeError: If config is not a ClientConfig
        """
        if not isinstance(config, ClientConfig):
            raise TypeError("config must be ClientConfig instance")

        self.config = config
        self.session = session if session is not None else build_retry_session(config.max_retries)

        logger.info(
            f"Chat API client initialized "
            f"(base_url={config.api_base_url}, timeout={config.timeout_seconds}s)"
        )

    @property
    def base_url(self) -> str:
        return self.config.api_base_url

    # ========================
    # Endpoints
    # ========================

    def process_message(
        self,
        message: str,
        anchor_id: Optional[str] = None,
        last_options: Optional[Sequence[MenuOption]] = None
    ) -> TransportResult:
        """
        Send one user message with its navigation context.

        Query parameters:
            message: trimmed user text
            parentMenuId: current anchor (omitted at root)
            previousMenuItems: JSON list of wire records (omitted if none)

        Args:
            message: User text, already trimmed by the controller
            anchor_id: Current hierarchy anchor or None
            last_options: Options shown most recently

        Returns:
            TransportResult (never raises for network conditions)
        """
        params = self.build_process_params(message, anchor_id, last_options)
        logger.debug(
            f"process_message: anchor={anchor_id}, "
            f"previous_options={len(last_options or ())}"
        )
        return self._get(self.config.process_path, params=params)

    def get_menu(self) -> TransportResult:
        """Fetch the top-level menu"""
        return self._get(self.config.menu_path)

    def health_check(self) -> TransportResult:
        """Fetch backend health information"""
        return self._get(self.config.health_path)

    def test_connection(self) -> Tuple[bool, str]:
        """
        Probe the health endpoint.

        Returns:
            tuple: (success, human-readable message). Never raises.
        """
        result = self.health_check()

        if result.transport_error is not None:
            return False, "Cannot reach API. Check your network connection."

        if not 200 <= result.status_code < 300:
            return False, (
                f"API returned status {result.status_code}. "
                f"Endpoint may not be configured correctly."
            )

        return True, "API connection successful"

    # ========================
    # Private Helpers
    # ========================

    @staticmethod
    def build_process_params(
        message: str,
        anchor_id: Optional[str],
        last_options: Optional[Sequence[MenuOption]]
    ) -> Dict[str, str]:
        """Encode the semantic request as query parameters"""
        params = {'message': message}

        if anchor_id:
            params['parentMenuId'] = anchor_id

        if last_options:
            params['previousMenuItems'] = json.dumps(
                [option.to_wire() for option in last_options],
                ensure_ascii=False
            )

        return params

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> TransportResult:
        url = self.config.url_for(path)

        try:
            response = self.session.get(
                url,
                params=params,
                headers=DEFAULT_HEADERS,
                timeout=self.config.timeout_seconds
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Request to {url} timed out after {self.config.timeout_seconds}s")
            return TransportResult(
                url=url,
                transport_error=TRANSPORT_TIMEOUT,
                error_detail=str(e)
            )
        except requests.exceptions.RequestException as e:
            # ConnectionError, DNS failure, invalid URL, too many redirects
            logger.error(f"Request to {url} failed: {type(e).__name__} - {e}")
            return TransportResult(
                url=url,
                transport_error=TRANSPORT_NETWORK,
                error_detail=str(e)
            )

        return self._decode(url, response)

    def _decode(self, url: str, response) -> TransportResult:
        content_type = response.headers.get('Content-Type', '') or ''

        try:
            body = response.json()
            body_is_json = True
        except ValueError:
            # Not JSON (HTML error page, plain text, empty body)
            body = response.text or ''
            body_is_json = False

        logger.debug(
            f"GET {url} -> {response.status_code} "
            f"(content_type={content_type!r}, json={body_is_json})"
        )

        return TransportResult(
            url=url,
            status_code=response.status_code,
            content_type=content_type,
            body=body,
            body_is_json=body_is_json
        )

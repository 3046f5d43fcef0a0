"""
Response Normalizer - Turn raw transport results into ConversationReply

Responsibilities:
- Classify transport failures (no response, timeout)
- Classify non-2xx statuses and non-JSON payloads
- Honor explicit success=false signals from the server
- Locate reply text under an ordered list of field aliases
- Repair menu option records into MenuOption values
- Distinguish an absent parentMenuId from an explicit null

Design principles:
- Never raises: every input produces a ConversationReply
- Closed failure taxonomy (FailureKind), no free-text exceptions
- Repair, don't reject: malformed option entries are dropped with a
  warning instead of failing the whole turn
- No sorting: options keep server order, presentation sorts them
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from menuchat.contracts import (
    ConversationReply,
    Document,
    HealthStatus,
    MenuContext,
    MenuListing,
    MenuOption,
    TransportResult,
    TRANSPORT_TIMEOUT,
)
from menuchat.utils.error_taxonomy import FailureKind, classify_status, status_message
from menuchat.utils.helpers import utc_now_iso

logger = logging.getLogger(__name__)

# Reply text aliases, consulted in this order
REPLY_TEXT_FIELDS = ('response', 'message', 'text')

# Where an error body may carry its explanation, in this order
ERROR_MESSAGE_FIELDS = ('error', 'message', 'detail')

# Lower-cased markers of an HTML error page
HTML_MARKERS = ('<!doctype', '<html')

# Wire field names
FIELD_SUCCESS = 'success'
FIELD_MENU_ITEMS = 'menuItems'
FIELD_ANCHOR = 'parentMenuId'
FIELD_TIMESTAMP = 'timestamp'
FIELD_MENU_CONTEXT = 'menuContext'

# Fixed messages
MSG_PROCESSING_FAILED = "Failed to process message"
MSG_MISSING_TEXT = "missing reply text"
MSG_HTML_PAGE = "Server returned HTML page instead of JSON"
MSG_EMPTY_BODY = "Empty response from server"
MSG_UNEXPECTED_SHAPE = "Unexpected payload shape"

# Longest slice of a raw error body echoed into a message
MAX_ERROR_EXCERPT = 200

# (kind, message, status_code)
Failure = Tuple[FailureKind, str, Optional[int]]


class ResponseNormalizer:
    """Convert arbitrary transport results into canonical replies"""

    def __init__(self, base_url: str = "") -> None:
        """
        Initialize normalizer

        Args:
            base_url: Backend origin, quoted in network-failure messages
        """
        self.base_url = base_url
        logger.info("Response Normalizer initialized")

    # ========================
    # Public API
    # ========================

    def normalize(self, raw: TransportResult) -> ConversationReply:
        """
        Normalize the result of a process-message round trip.

        Rules, applied in order:
        1. No response obtained -> Timeout / NetworkUnreachable
        2. Non-2xx status -> BadGateway family
        3. Non-JSON, HTML, empty or non-object body -> MalformedPayload
        4. success is false -> ServerReportedFailure
        5. No reply text under any alias -> MissingField
        6. menuItems (list) -> options; anything else -> no options
        7. parentMenuId present (even null) -> anchor supplied

        Args:
            raw: TransportResult from the API client

        Returns:
            ConversationReply (never raises)

        Examples:
            >>> raw = TransportResult(url='u', status_code=200,
            ...     content_type='application/json', body_is_json=True,
            ...     body={'success': True, 'response': 'Pick one'})
            >>> ResponseNormalizer().normalize(raw).text
            'Pick one'
        """
        try:
            return self._normalize_reply(raw)
        except Exception as e:
            logger.error(f"Unexpected error while normalizing reply: {type(e).__name__} - {e}")
            return self._failure_reply((
                FailureKind.MALFORMED_PAYLOAD,
                f"Could not read server response: {e}",
                getattr(raw, 'status_code', None)
            ))

    def normalize_menu(self, raw: TransportResult) -> MenuListing:
        """
        Normalize the result of the top-level menu endpoint.

        Applies rules 1-4 and 6; a missing menuItems field is an empty menu.
        """
        try:
            data, failure = self._unwrap(raw, check_success_flag=True)
            if failure is not None:
                kind, message, _ = failure
                return MenuListing(ok=False, error_message=message, failure_kind=kind)

            return MenuListing(
                ok=True,
                options=self._parse_options(data.get(FIELD_MENU_ITEMS)),
                timestamp=self._parse_timestamp(data)
            )
        except Exception as e:
            logger.error(f"Unexpected error while normalizing menu: {type(e).__name__} - {e}")
            return MenuListing(
                ok=False,
                error_message=f"Could not read server response: {e}",
                failure_kind=FailureKind.MALFORMED_PAYLOAD
            )

    def normalize_health(self, raw: TransportResult) -> HealthStatus:
        """Normalize the result of the health endpoint (rules 1-3)"""
        try:
            data, failure = self._unwrap(raw, check_success_flag=False)
            if failure is not None:
                kind, message, _ = failure
                return HealthStatus(ok=False, error_message=message, failure_kind=kind)

            return HealthStatus(
                ok=True,
                status=self._as_text(data.get('status')),
                service=self._as_text(data.get('service')),
                version=self._as_text(data.get('version')),
                timestamp=self._parse_timestamp(data)
            )
        except Exception as e:
            logger.error(f"Unexpected error while normalizing health: {type(e).__name__} - {e}")
            return HealthStatus(
                ok=False,
                error_message=f"Could not read server response: {e}",
                failure_kind=FailureKind.MALFORMED_PAYLOAD
            )

    # ========================
    # Reply pipeline
    # ========================

    def _normalize_reply(self, raw: TransportResult) -> ConversationReply:
        data, failure = self._unwrap(raw, check_success_flag=True)
        if failure is not None:
            return self._failure_reply(failure)

        # Rule 5: reply text
        text = self._find_reply_text(data)
        if text is None:
            logger.warning(
                f"Reply has no text under {list(REPLY_TEXT_FIELDS)}; "
                f"keys present: {sorted(data.keys())}"
            )
            return self._failure_reply((FailureKind.MISSING_FIELD, MSG_MISSING_TEXT, raw.status_code))

        # Rule 6: options (absence is not an error)
        options = self._parse_options(data.get(FIELD_MENU_ITEMS))

        # Rule 7: anchor, absent vs explicit null
        anchor_supplied = FIELD_ANCHOR in data
        anchor_id = self._as_identifier(data.get(FIELD_ANCHOR)) if anchor_supplied else None

        reply = ConversationReply(
            ok=True,
            text=text,
            options=options,
            anchor_id=anchor_id,
            anchor_supplied=anchor_supplied,
            status_code=raw.status_code,
            timestamp=self._parse_timestamp(data),
            menu_context=self._parse_menu_context(data.get(FIELD_MENU_CONTEXT))
        )

        logger.debug(
            f"Normalized reply: {len(options)} options, "
            f"anchor_supplied={anchor_supplied}, anchor={anchor_id}"
        )
        return reply

    def _unwrap(
        self,
        raw: TransportResult,
        check_success_flag: bool
    ) -> Tuple[Optional[Dict[str, Any]], Optional[Failure]]:
        """
        Apply rules 1-4 shared by every endpoint.

        Returns:
            tuple: (body dict, None) on success, (None, failure) otherwise
        """
        # Rule 1: transport failed before a body was obtained
        if raw.transport_error is not None:
            if raw.transport_error == TRANSPORT_TIMEOUT:
                return None, (FailureKind.TIMEOUT, "Request timed out. The server took too long to respond", None)
            target = self.base_url or raw.url
            return None, (
                FailureKind.NETWORK_UNREACHABLE,
                f"Network error. Cannot reach {target}. "
                f"Please check your connection and ensure the backend is running",
                None
            )

        status = raw.status_code

        # Rule 2: non-2xx status, classified before the body is inspected
        kind = classify_status(status)
        if kind is not None:
            message = status_message(kind, status, raw.url)
            if kind == FailureKind.BAD_GATEWAY:
                message = self._embedded_error(raw) or message
            logger.warning(f"HTTP {status} from {raw.url} classified as {kind.value}")
            return None, (kind, message, status)

        # Rule 3: body must be a JSON object declared as JSON
        malformed = self._check_structured(raw)
        if malformed is not None:
            logger.warning(f"Malformed payload from {raw.url}: {malformed}")
            return None, (FailureKind.MALFORMED_PAYLOAD, malformed, status)

        data = raw.body

        # Rule 4: explicit failure indicator (absent means success)
        if check_success_flag and self._signals_failure(data.get(FIELD_SUCCESS)):
            message = self._first_text(data, ('error', 'message')) or MSG_PROCESSING_FAILED
            logger.warning(f"Server reported failure: {message}")
            return None, (FailureKind.SERVER_REPORTED_FAILURE, message, status)

        return data, None

    def _check_structured(self, raw: TransportResult) -> Optional[str]:
        """Return a description of why the body is not usable, or None"""
        content_type = (raw.content_type or '').lower()

        if not raw.body_is_json:
            text = raw.body if isinstance(raw.body, str) else ''
            lowered = text.lower()
            if any(marker in lowered for marker in HTML_MARKERS):
                return MSG_HTML_PAGE
            if not text.strip():
                return MSG_EMPTY_BODY
            return f"Server returned {raw.content_type or 'unknown content type'} instead of JSON"

        if 'json' not in content_type:
            return f"Server returned {raw.content_type or 'unknown content type'} instead of JSON"

        if not isinstance(raw.body, dict):
            return MSG_UNEXPECTED_SHAPE

        return None

    def _embedded_error(self, raw: TransportResult) -> Optional[str]:
        """Explanation carried by an error response body, if any"""
        if raw.body_is_json and isinstance(raw.body, dict):
            return self._first_text(raw.body, ERROR_MESSAGE_FIELDS)

        if isinstance(raw.body, str) and raw.body.strip():
            lowered = raw.body.lower()
            if not any(marker in lowered for marker in HTML_MARKERS):
                return raw.body.strip()[:MAX_ERROR_EXCERPT]

        return None

    def _failure_reply(self, failure: Failure) -> ConversationReply:
        kind, message, status_code = failure
        return ConversationReply(
            ok=False,
            error_message=message,
            failure_kind=kind,
            status_code=status_code,
            timestamp=utc_now_iso()
        )

    # ========================
    # Field extraction
    # ========================

    @staticmethod
    def _signals_failure(value: Any) -> bool:
        if value is False:
            return True
        return isinstance(value, str) and value.strip().lower() == 'false'

    def _find_reply_text(self, data: Dict[str, Any]) -> Optional[str]:
        """First non-blank value under REPLY_TEXT_FIELDS, numbers coerced"""
        for field in REPLY_TEXT_FIELDS:
            if field not in data:
                continue

            value = data[field]
            if isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                logger.warning(f"Reply field '{field}' is numeric, converting to text")
                value = str(value)

            if isinstance(value, str) and value.strip():
                if field != REPLY_TEXT_FIELDS[0]:
                    logger.warning(f"Reply text found under fallback field '{field}'")
                return value

        return None

    @staticmethod
    def _first_text(data: Dict[str, Any], fields: Tuple[str, ...]) -> Optional[str]:
        for field in fields:
            value = data.get(field)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    def _parse_options(self, items: Any) -> Tuple[MenuOption, ...]:
        if items is None:
            return ()

        if not isinstance(items, list):
            logger.warning(f"menuItems is {type(items).__name__}, not a list - ignoring")
            return ()

        options: List[MenuOption] = []
        for index, item in enumerate(items):
            option = self._parse_option(item)
            if option is None:
                logger.warning(f"Dropping malformed menu item at index {index}: {item!r}")
                continue
            options.append(option)

        return tuple(options)

    def _parse_option(self, item: Any) -> Optional[MenuOption]:
        """Repair one wire record; None if it cannot be used"""
        if not isinstance(item, dict):
            return None

        ordinal = self._as_int(item.get('option_number'))
        if ordinal is None:
            return None

        return MenuOption(
            id=self._as_identifier(item.get('id')) or '',
            title=self._as_text(item.get('title')),
            ordinal=ordinal,
            response_text=self._as_text(item.get('response_text')),
            is_root=self._as_bool(item.get('is_main_menu')),
            parent_id=self._as_identifier(item.get('parent_id')),
            created_at=self._as_text(item.get('created_at')),
            documents=self._parse_documents(item.get('documents'))
        )

    def _parse_documents(self, items: Any) -> Tuple[Document, ...]:
        if not isinstance(items, list):
            return ()

        documents = []
        for item in items:
            if not isinstance(item, dict):
                continue
            doc_id = self._as_identifier(item.get('id'))
            if doc_id is None:
                continue
            documents.append(Document(
                id=doc_id,
                title=self._as_text(item.get('title')),
                file_name=self._as_text(item.get('file_name')),
                file_path=self._as_text(item.get('file_path')),
                file_size=self._as_int(item.get('file_size')) or 0,
                mime_type=self._as_text(item.get('mime_type'))
            ))

        return tuple(documents)

    def _parse_menu_context(self, value: Any) -> Optional[MenuContext]:
        if not isinstance(value, dict):
            return None

        path = value.get('path')
        return MenuContext(
            current_parent_id=self._as_identifier(value.get('currentParentId')),
            current_parent_title=self._as_text(value.get('currentParentTitle')),
            hierarchy_level=self._as_int(value.get('hierarchyLevel')) or 0,
            path=tuple(str(p) for p in path) if isinstance(path, list) else ()
        )

    def _parse_timestamp(self, data: Dict[str, Any]) -> str:
        value = data.get(FIELD_TIMESTAMP)
        if isinstance(value, str) and value.strip():
            return value
        return utc_now_iso()

    # ========================
    # Coercion
    # ========================

    @staticmethod
    def _as_text(value: Any) -> str:
        if value is None:
            return ''
        return value if isinstance(value, str) else str(value)

    @staticmethod
    def _as_identifier(value: Any) -> Optional[str]:
        """Identifiers are strings; None and '' both mean 'no identifier'"""
        if value is None or isinstance(value, bool):
            return None
        text = value if isinstance(value, str) else str(value)
        return text if text else None

    @staticmethod
    def _as_int(value: Any) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if value.is_integer() else None
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return None
        return None

    @staticmethod
    def _as_bool(value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in {'true', 'yes', '1', 't', 'y'}
        return bool(value)

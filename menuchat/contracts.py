"""
Semantic contracts for the menu chat client.

This module defines immutable data structures that serve as contracts
between modules. These are NOT validators - they define shape and
semantics without enforcing rules. The Response Normalizer is the only
module that turns untrusted wire data into these records.

Design principles:
- Frozen dataclasses (immutable after creation)
- Tuples instead of lists so values can be shared by reference
- No dependencies on other modules except the failure taxonomy
- Definition layer only (no enforcement)

Contents:
- Document: Opaque attachment declared on a menu option
- MenuOption: Selectable node in the server's menu hierarchy
- MenuContext: Optional hierarchy breadcrumb sent by the server
- ConversationReply: Normalized result of one server turn
- Turn: One user or bot message in the transcript
- TransportResult: Raw outcome of one HTTP round trip
- MenuListing / HealthStatus: Normalized results of the auxiliary endpoints

Usage:
    from menuchat.contracts import MenuOption, ConversationReply
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from menuchat.utils.error_taxonomy import FailureKind


class TurnSide(str, Enum):
    """Author of a transcript turn"""
    USER = "user"
    BOT = "bot"


@dataclass(frozen=True)
class Document:
    """
    Attachment declared by the backend on a menu option.

    The core never downloads or inspects document bytes; documents are
    carried through to the presentation layer, which hands them to the
    transfer/sharing collaborator keyed by `id`.

    Attributes:
        id: Document identifier (key for the transfer collaborator)
        title: Display title
        file_name: Suggested local file name
        file_path: Remote URL of the file
        file_size: Size in bytes (0 if the server did not say)
        mime_type: MIME type reported by the server
    """
    id: str
    title: str = ""
    file_name: str = ""
    file_path: str = ""
    file_size: int = 0
    mime_type: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'file_name': self.file_name,
            'file_path': self.file_path,
            'file_size': self.file_size,
            'mime_type': self.mime_type,
        }


@dataclass(frozen=True)
class MenuOption:
    """
    Selectable node in the bot's menu hierarchy.

    Ordinals determine presentation order and are the channel through
    which a user selects an option: the client echoes the ordinal back as
    the next user message. Options are kept in the order the server sent
    them; sorting by ordinal is a presentation concern.

    Wire mapping:
        option_number -> ordinal
        response_text -> response_text
        is_main_menu  -> is_root
        parent_id     -> parent_id
        created_at    -> created_at

    Attributes:
        id: Option identifier
        title: Label shown on the option button
        ordinal: Selection number, unique within a sibling set
        response_text: Text the server answers with when selected
        is_root: True for top-level menu entries
        parent_id: Identifier of the parent option (None at root)
        created_at: Server creation timestamp (opaque string)
        documents: Attachments offered with this option
    """
    id: str
    title: str
    ordinal: int
    response_text: str = ""
    is_root: bool = False
    parent_id: Optional[str] = None
    created_at: str = ""
    documents: Tuple[Document, ...] = ()

    def to_wire(self) -> Dict[str, Any]:
        """
        Serialize back to the snake_case wire record.

        Used to echo previously shown options to the server so it can
        disambiguate short numeric replies.
        """
        record = {
            'id': self.id,
            'title': self.title,
            'option_number': self.ordinal,
            'response_text': self.response_text,
            'is_main_menu': self.is_root,
            'parent_id': self.parent_id,
            'created_at': self.created_at,
        }
        if self.documents:
            record['documents'] = [doc.to_wire() for doc in self.documents]
        return record


@dataclass(frozen=True)
class MenuContext:
    """
    Hierarchy breadcrumb optionally attached to a reply.

    Attributes:
        current_parent_id: Identifier of the menu currently shown
        current_parent_title: Its title
        hierarchy_level: Depth below the root (0 at root)
        path: Titles from the root down to the current menu
    """
    current_parent_id: Optional[str] = None
    current_parent_title: str = ""
    hierarchy_level: int = 0
    path: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ConversationReply:
    """
    Normalized result of one server turn.

    Produced by: Response Normalizer (never raises, always returns one)
    Consumed by: Session Controller

    Semantics:
    - ok=True  => text is a non-empty string
    - ok=False => error_message is populated, failure_kind is set and the
                  controller must not mutate navigation context
    - anchor_supplied distinguishes an absent parentMenuId (False) from an
      explicit null (True with anchor_id=None)

    Attributes:
        ok: Whether the turn produced a usable reply
        text: Reply text ('' on failure)
        options: Menu options in server order (possibly empty)
        anchor_id: New hierarchy anchor, meaningful only if anchor_supplied
        anchor_supplied: Whether the server sent parentMenuId at all
        error_message: Short description of the failure
        failure_kind: Taxonomy value (diagnostics only)
        status_code: HTTP status if a response was obtained
        timestamp: Server timestamp, or local time if absent
        menu_context: Optional breadcrumb
    """
    ok: bool
    text: str = ""
    options: Tuple[MenuOption, ...] = ()
    anchor_id: Optional[str] = None
    anchor_supplied: bool = False
    error_message: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    status_code: Optional[int] = None
    timestamp: str = ""
    menu_context: Optional[MenuContext] = None


@dataclass(frozen=True)
class Turn:
    """
    One entry of the append-only transcript.

    Attributes:
        id: Unique turn identifier
        side: TurnSide.USER or TurnSide.BOT
        text: Message text
        timestamp: Creation time (UTC)
        options: Menu options attached to a bot turn
        failure_kind: Set on bot turns that report a failed request
    """
    id: str
    side: TurnSide
    text: str
    timestamp: datetime
    options: Tuple[MenuOption, ...] = ()
    failure_kind: Optional[FailureKind] = None

    @property
    def is_user(self) -> bool:
        return self.side == TurnSide.USER


@dataclass(frozen=True)
class TransportResult:
    """
    Raw outcome of one HTTP round trip, before normalization.

    Exactly one of these situations holds:
    - transport_error is set: no response was obtained (status_code None)
    - status_code is set: a response was obtained; body is the decoded
      JSON value when the payload parsed, otherwise the raw text

    Attributes:
        url: Request URL (for diagnostics and messages)
        status_code: HTTP status, None if no response
        content_type: Declared Content-Type header ('' if none)
        body: Decoded JSON value or raw text
        body_is_json: Whether body came from a successful JSON decode
        transport_error: 'timeout' or 'network' when no response obtained
        error_detail: Exception text for transport errors
    """
    url: str
    status_code: Optional[int] = None
    content_type: str = ""
    body: Any = None
    body_is_json: bool = False
    transport_error: Optional[str] = None
    error_detail: Optional[str] = None


# transport_error values
TRANSPORT_TIMEOUT = "timeout"
TRANSPORT_NETWORK = "network"


@dataclass(frozen=True)
class MenuListing:
    """Normalized result of the top-level menu endpoint"""
    ok: bool
    options: Tuple[MenuOption, ...] = ()
    timestamp: str = ""
    error_message: Optional[str] = None
    failure_kind: Optional[FailureKind] = None


@dataclass(frozen=True)
class HealthStatus:
    """Normalized result of the health endpoint"""
    ok: bool
    status: str = ""
    service: str = ""
    version: str = ""
    timestamp: str = ""
    error_message: Optional[str] = None
    failure_kind: Optional[FailureKind] = None

"""
Conversation State - Per-session navigation context and transcript

Responsibilities:
- Hold the current hierarchy anchor (None = root)
- Hold the most recently offered menu options
- Hold the append-only transcript of user and bot turns
- Snapshot to / restore from a JSON-safe dict

Design principles:
- Dumb container: no greeting rules, no network, no parsing
- Anchor and options change together through apply_reply() only,
  so they can never be torn by a partial update
- Transcript is append-only; readers get copies

API Philosophy:
- Conversation State = dumb data container
- Session Controller = smart coordinator (decides WHEN to mutate)
- Response Normalizer = decides WHAT a reply means
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from menuchat.contracts import ConversationReply, Document, MenuOption, Turn, TurnSide
from menuchat.utils.error_taxonomy import FailureKind, VALID_FAILURE_KINDS
from menuchat.utils.helpers import generate_session_id, generate_turn_id, utc_now

logger = logging.getLogger(__name__)


class ConversationState:
    """Mutable state owned by one Session Controller"""

    def __init__(self, session_id: Optional[str] = None):
        """
        Initialize empty state (root anchor, no options, empty transcript)

        Args:
            session_id: Identifier to reuse; generated when omitted
        """
        self.session_id: str = session_id or generate_session_id(short=True)
        self.anchor_id: Optional[str] = None
        self.last_menu_options: List[MenuOption] = []
        self._transcript: List[Turn] = []

        logger.info(f"Conversation state initialized (session {self.session_id})")

    # ========================
    # Navigation context
    # ========================

    def reset_context(self) -> None:
        """Return to the root: clear anchor and remembered options together"""
        self.anchor_id = None
        self.last_menu_options = []
        logger.info(f"[{self.session_id}] Navigation context reset to root")

    def apply_reply(self, reply: ConversationReply) -> None:
        """
        Merge a successful reply into navigation context.

        Rules:
        - anchor_id changes only if the reply supplied one (explicit null
          moves to root; an absent field leaves the anchor unchanged)
        - last_menu_options is replaced only by a non-empty option list;
          an empty or absent list keeps the previous options (sticky context)

        Both fields are computed first and assigned together.

        Args:
            reply: Normalized reply with ok=True

        Raises:
            ValueError: If reply is a failure (failures never touch context)
        """
        if not reply.ok:
            raise ValueError("apply_reply() called with a failed reply")

        new_anchor = reply.anchor_id if reply.anchor_supplied else self.anchor_id
        new_options = list(reply.options) if reply.options else self.last_menu_options

        self.anchor_id, self.last_menu_options = new_anchor, new_options

        logger.debug(
            f"[{self.session_id}] Context after reply: anchor={self.anchor_id}, "
            f"options={len(self.last_menu_options)}"
        )

    # ========================
    # Transcript
    # ========================

    def add_user_turn(self, text: str) -> Turn:
        turn = Turn(
            id=generate_turn_id(),
            side=TurnSide.USER,
            text=text,
            timestamp=utc_now()
        )
        self._transcript.append(turn)
        return turn

    def add_bot_turn(
        self,
        text: str,
        options: Sequence[MenuOption] = (),
        failure_kind: Optional[FailureKind] = None
    ) -> Turn:
        turn = Turn(
            id=generate_turn_id(),
            side=TurnSide.BOT,
            text=text,
            timestamp=utc_now(),
            options=tuple(options),
            failure_kind=failure_kind
        )
        self._transcript.append(turn)
        return turn

    @property
    def transcript(self) -> List[Turn]:
        """Copy of the transcript (turns themselves are immutable)"""
        return list(self._transcript)

    @property
    def turn_count(self) -> int:
        return len(self._transcript)

    # ========================
    # Snapshot / restore
    # ========================

    def snapshot_state(self) -> Dict[str, Any]:
        """
        Export a JSON-safe, lossless copy of the state.

        Returns:
            dict: {
                'session_id': str,
                'anchor_id': str | None,
                'last_menu_options': [wire records],
                'transcript': [turn dicts]
            }
        """
        return {
            'session_id': self.session_id,
            'anchor_id': self.anchor_id,
            'last_menu_options': [option.to_wire() for option in self.last_menu_options],
            'transcript': [self._serialize_turn(turn) for turn in self._transcript],
        }

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any]) -> "ConversationState":
        """
        Rebuild state from snapshot_state() output.

        Args:
            snapshot: Dict previously produced by snapshot_state()

        Returns:
            ConversationState

        Raises:
            ValueError: If required keys are missing or values are invalid
        """
        required_keys = {'session_id', 'anchor_id', 'last_menu_options', 'transcript'}
        missing_keys = required_keys - set(snapshot.keys())
        if missing_keys:
            raise ValueError(f"snapshot missing required keys: {missing_keys}")

        state = cls(session_id=snapshot['session_id'])
        state.anchor_id = snapshot['anchor_id']
        state.last_menu_options = [cls._deserialize_option(o) for o in snapshot['last_menu_options']]
        state._transcript = [cls._deserialize_turn(t) for t in snapshot['transcript']]

        logger.info(
            f"[{state.session_id}] Restored from snapshot "
            f"({state.turn_count} turns, anchor={state.anchor_id})"
        )
        return state

    # ========================
    # Private Helpers
    # ========================

    @staticmethod
    def _serialize_turn(turn: Turn) -> Dict[str, Any]:
        return {
            'id': turn.id,
            'side': turn.side.value,
            'text': turn.text,
            'timestamp': turn.timestamp.isoformat(),
            'options': [option.to_wire() for option in turn.options],
            'failure_kind': turn.failure_kind.value if turn.failure_kind else None,
        }

    @classmethod
    def _deserialize_turn(cls, data: Dict[str, Any]) -> Turn:
        failure_kind = data.get('failure_kind')
        if failure_kind is not None and failure_kind not in VALID_FAILURE_KINDS:
            raise ValueError(f"Invalid failure_kind in snapshot: {failure_kind}")

        return Turn(
            id=data['id'],
            side=TurnSide(data['side']),
            text=data['text'],
            timestamp=datetime.fromisoformat(data['timestamp']),
            options=tuple(cls._deserialize_option(o) for o in data.get('options', [])),
            failure_kind=FailureKind(failure_kind) if failure_kind else None
        )

    @staticmethod
    def _deserialize_option(data: Dict[str, Any]) -> MenuOption:
        """Inverse of MenuOption.to_wire() (trusted input, no repair)"""
        return MenuOption(
            id=data['id'],
            title=data['title'],
            ordinal=data['option_number'],
            response_text=data.get('response_text', ''),
            is_root=data.get('is_main_menu', False),
            parent_id=data.get('parent_id'),
            created_at=data.get('created_at', ''),
            documents=tuple(Document(**doc) for doc in data.get('documents', []))
        )

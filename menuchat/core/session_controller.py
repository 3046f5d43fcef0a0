"""
Session Controller - One conversational turn at a time (Functional Core)

Responsibilities:
- Normalize user input (trim, job-number upper-casing)
- Reset navigation context on greetings
- Echo the user's turn immediately
- Send the turn with the current anchor and remembered options
- Merge successful replies into state; preserve state on failures
- Enforce single-flight: one turn in flight per session

Design principles:
- Thin orchestration layer (meaning of replies lives in the normalizer)
- Failures are values, not exceptions: every accepted submission adds
  exactly one user turn and one bot turn
- Busy/idle is an explicit two-state machine guarded by a lock
"""

import logging
import re
import string
import threading
from typing import Optional, Union

from menuchat.contracts import ConversationReply, MenuOption, TransportResult, TRANSPORT_NETWORK
from menuchat.core.conversation_state import ConversationState
from menuchat.results import IllegalCommand, TurnResult
from menuchat.utils.error_taxonomy import FailureKind
from menuchat.utils.helpers import convert_job_number_to_uppercase, utc_now_iso

logger = logging.getLogger(__name__)

# Greetings restart the conversation from the top-level menu
GREETING_PATTERN = re.compile(
    r'^(hi|hello|hey|good morning|good afternoon|good evening|greetings)'
    r'[\s' + re.escape(string.punctuation) + r']*$',
    re.IGNORECASE
)


def is_greeting(text: str) -> bool:
    """
    Check whether text is a bare greeting

    Examples:
        >>> is_greeting("Hello!")
        True
        >>> is_greeting("hello there")
        False
    """
    return GREETING_PATTERN.match(text.strip()) is not None


class SessionController:
    """
    Orchestrates turns for one chat session

    State machine:
        Idle -> Sending -> Idle (success, context updated)
                        -> Idle (failure, context preserved)
    """

    COMMAND_SUBMIT = "SubmitUserText"
    ERROR_TEMPLATE = "Sorry, I encountered an error: {message}. Please try again."

    def __init__(self, transport, normalizer, state: Optional[ConversationState] = None):
        """
        Initialize controller with its collaborators

        Args:
            transport: Object with process_message(message, anchor_id, last_options)
                (ChatAPIClient in production, mocks in tests)
            normalizer: Object with normalize(raw) -> ConversationReply
            state: Existing state to resume; fresh state when omitted

        Raises:
            TypeError: If a collaborator is missing its required method
        """
        self._validate_modules(transport, normalizer)

        self.transport = transport
        self.normalizer = normalizer
        self.state = state if state is not None else ConversationState()

        self._busy = False
        self._busy_lock = threading.Lock()

        logger.info(f"Session controller initialized (session {self.state.session_id})")

    def _validate_modules(self, transport, normalizer):
        """Validate collaborator interfaces"""
        if not callable(getattr(transport, 'process_message', None)):
            raise TypeError("transport must have callable process_message() method")

        if not callable(getattr(normalizer, 'normalize', None)):
            raise TypeError("normalizer must have callable normalize() method")

    # ========================
    # Read-only views
    # ========================

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def anchor_id(self) -> Optional[str]:
        return self.state.anchor_id

    @property
    def last_menu_options(self):
        return tuple(self.state.last_menu_options)

    @property
    def transcript(self):
        return self.state.transcript

    # ========================
    # Turn handling
    # ========================

    def submit_user_text(self, user_input: str) -> Union[TurnResult, IllegalCommand]:
        """
        Process one user message end to end

        Steps:
        0. Trim input, upper-case job numbers
        1. Greeting -> reset anchor and options before the request is built
        2. Append user turn (optimistic local echo)
        3. Send (message, anchor, options) and normalize the result
        4. ok -> append bot turn, merge reply into context
        5. not ok -> append error turn, leave context untouched

        Args:
            user_input: Raw text typed or selected by the user

        Returns:
            TurnResult once the turn resolves, or IllegalCommand if another
            turn is still in flight (nothing is recorded in that case)

        Raises:
            TypeError: If user_input is not a string
            ValueError: If user_input is empty after trimming
        """
        if not isinstance(user_input, str):
            raise TypeError(f"user_input must be string, got {type(user_input).__name__}")

        message = convert_job_number_to_uppercase(user_input.strip())
        if not message:
            raise ValueError("user_input must not be empty")

        # Single-flight guard: Idle -> Sending
        with self._busy_lock:
            if self._busy:
                logger.warning(f"[{self.session_id}] Rejected submission: turn already in flight")
                return IllegalCommand(
                    reason="A message is already being processed; wait for the reply",
                    command_type=self.COMMAND_SUBMIT
                )
            self._busy = True

        try:
            return self._run_turn(message)
        finally:
            # Sending -> Idle, whatever happened
            with self._busy_lock:
                self._busy = False

    def select_option(self, option: Union[MenuOption, int]) -> Union[TurnResult, IllegalCommand]:
        """
        Select a menu option by echoing its ordinal as the next message

        Args:
            option: MenuOption or its ordinal

        Returns:
            Same as submit_user_text()
        """
        ordinal = option.ordinal if isinstance(option, MenuOption) else option
        if isinstance(ordinal, bool) or not isinstance(ordinal, int):
            raise TypeError(f"option must be MenuOption or int, got {type(option).__name__}")
        return self.submit_user_text(str(ordinal))

    def _run_turn(self, message: str) -> TurnResult:
        # Step 1: greeting reset happens before the outbound request is built
        greeting_reset = is_greeting(message)
        if greeting_reset:
            logger.info(f"[{self.session_id}] Greeting detected, resetting context")
            self.state.reset_context()

        # Step 2: local echo
        user_turn = self.state.add_user_turn(message)

        # Step 3: round trip
        reply = self._send(message)

        if reply.ok:
            # Step 4
            bot_turn = self.state.add_bot_turn(reply.text, reply.options)
            self.state.apply_reply(reply)
            logger.info(
                f"[{self.session_id}] Reply received: {len(reply.options)} options, "
                f"anchor={self.state.anchor_id}"
            )
        else:
            # Step 5: context untouched
            bot_turn = self.state.add_bot_turn(
                self.ERROR_TEMPLATE.format(message=reply.error_message),
                failure_kind=reply.failure_kind
            )
            logger.warning(
                f"[{self.session_id}] Turn failed ({reply.failure_kind.value if reply.failure_kind else 'unknown'}): "
                f"{reply.error_message}; context preserved (anchor={self.state.anchor_id})"
            )

        return TurnResult(
            user_turn=user_turn,
            bot_turn=bot_turn,
            reply=reply,
            anchor_id=self.state.anchor_id,
            last_menu_options=tuple(self.state.last_menu_options),
            greeting_reset=greeting_reset
        )

    def _send(self, message: str) -> ConversationReply:
        """Call the transport and normalize; faults in either become failures"""
        anchor_id = self.state.anchor_id
        last_options = tuple(self.state.last_menu_options)

        try:
            raw = self.transport.process_message(message, anchor_id, last_options or None)
        except Exception as e:
            logger.error(
                f"[{self.session_id}] Transport raised {type(e).__name__}: {e}"
            )
            raw = TransportResult(
                url=getattr(self.transport, 'base_url', ''),
                transport_error=TRANSPORT_NETWORK,
                error_detail=str(e)
            )

        try:
            return self.normalizer.normalize(raw)
        except Exception as e:
            logger.error(
                f"[{self.session_id}] Normalizer raised {type(e).__name__}: {e}"
            )
            return ConversationReply(
                ok=False,
                error_message=f"Could not read server response: {e}",
                failure_kind=FailureKind.MALFORMED_PAYLOAD,
                status_code=raw.status_code,
                timestamp=utc_now_iso()
            )

"""
Result types returned by SessionController.submit_user_text()

These are the ONLY return types from the turn handler.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from menuchat.contracts import ConversationReply, MenuOption, Turn


@dataclass(frozen=True)
class TurnResult:
    """
    Completed turn (successful or failed reply).

    Returned by: submit_user_text, select_option

    Attributes:
        user_turn: Turn appended for the user's message
        bot_turn: Turn appended for the reply or the error
        reply: Normalized reply (reply.ok tells success from failure)
        anchor_id: Anchor after the turn
        last_menu_options: Remembered options after the turn
        greeting_reset: Whether the input reset context to the root
    """
    user_turn: Turn
    bot_turn: Turn
    reply: ConversationReply
    anchor_id: Optional[str]
    last_menu_options: Tuple[MenuOption, ...]
    greeting_reset: bool

    @property
    def ok(self) -> bool:
        return self.reply.ok


@dataclass(frozen=True)
class IllegalCommand:
    """
    Submission rejected by the controller (invalid lifecycle transition).

    Examples:
    - Message submitted while another turn is still in flight

    Attributes:
        reason: Human-readable explanation
        command_type: Name of rejected command type
    """
    reason: str
    command_type: str

"""Submit-message result model."""

from maraum.models.base import BaseSchema
from maraum.models.message import Message
from maraum.models.session import SessionCompletion


class MessageExchangeResult(BaseSchema):
    """Human turn, assistant turn and the completion outcome of one exchange.

    ``session`` is only present when the exchange completed the session.
    ``assistant_message`` is absent only when a concurrent exchange completed
    the session first and this one would have completed it too.
    """

    user_message: Message
    assistant_message: Message | None = None
    session_complete: bool = False
    completion_flag_detected: bool = False
    session: SessionCompletion | None = None

"""
Handler Context

What a route handler receives besides the request payload: a way to send
frames back through the connection, plus the identity of the request it is
answering so that replies can be correlated by the caller.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

SendFunction = Callable[[Mapping[str, Any]], bool]


@dataclass(frozen=True)
class HandlerContext:
    send: SendFunction
    operation: str
    request_id: Optional[str] = None

    def reply(self, reply_type: str, **fields: Any) -> bool:
        """
        Send a reply frame for the request being handled

        The request's requestId, when it carried one, is copied verbatim into
        the reply. May be called any number of times (progress, then result).
        Returns the send() outcome: False when the connection is not open.
        """
        message: Dict[str, Any] = {"type": reply_type, **fields}
        if self.request_id is not None:
            message["requestId"] = self.request_id
        return self.send(message)

    def fail(self, reply_type: str, error: Any, **fields: Any) -> bool:
        """Send an error-flagged reply of the same family as the success reply"""
        fields["error"] = str(error)
        return self.reply(reply_type, **fields)

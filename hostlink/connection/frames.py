"""
Wire Frames

JSON envelope exchanged with the relay:

    {"type": "<operation-or-reply>", "requestId": "<opaque>", ...fields}
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from shared.functional import Result, Success, Failure

logger = logging.getLogger(__name__)


class Frame(BaseModel):
    """Envelope of one inbound or outbound message"""
    model_config = {'extra': 'allow', 'populate_by_name': True}

    type: str = Field(min_length=1)
    request_id: Optional[str] = Field(default=None, alias="requestId")

    @property
    def payload(self) -> Dict[str, Any]:
        """The frame as the peer sent it, operation fields included"""
        return self.model_dump(by_alias=True, exclude_unset=True)


PING: Dict[str, Any] = {"type": "ping"}
PONG: Dict[str, Any] = {"type": "pong"}


def parse_frame(raw: Union[str, bytes]) -> Result[Frame, str]:
    """Decode and validate one inbound text frame"""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        return Failure(f"Invalid JSON: {e}")

    if not isinstance(data, dict):
        return Failure(f"Frame must be a JSON object, got {type(data).__name__}")

    try:
        return Success(Frame.model_validate(data))
    except ValidationError as e:
        return Failure(f"Invalid envelope: {e.error_count()} error(s): {e.errors()[0]['msg']}")


def encode_frame(message: Union[Frame, Mapping[str, Any]]) -> Result[str, str]:
    """Serialize an outbound message to its wire text"""
    if isinstance(message, Frame):
        message = message.payload

    if not isinstance(message, Mapping):
        return Failure(f"Outbound frame must be a mapping, got {type(message).__name__}")

    if not isinstance(message.get("type"), str):
        return Failure("Outbound frame has no string 'type'")

    try:
        return Success(json.dumps(message))
    except (TypeError, ValueError) as e:
        return Failure(f"Frame is not JSON serializable: {e}")

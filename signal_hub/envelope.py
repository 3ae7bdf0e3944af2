"""
Signal envelope: the only message type exchanged between peers and the hub.

On the wire a signal is a JSON object:

    {"from": "...", "type": "...", "to": "...", "data": ..., "iceCandidates": [...]}

Only `from` and `type` are required. Optional fields that are not set are left
out of the encoded object instead of being sent as null.
"""
import json
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from .errors import DecodeError

# Types produced by the hub itself. Everything else is relayed untouched.
CLIENT_ID = "client_id"
CREATE_PC = "create_pc"
CREATE_OFFER = "create_offer"
CLIENT_DISCONNECT = "client_disconnect"

ENC = "utf-8"


@dataclass
class Signal:
    from_: str  # "from" is a keyword in Python
    type: str
    to: Optional[str] = None
    data: Any = None
    ice_candidates: Optional[List[Any]] = None

    def to_dict(self) -> dict:
        d = {"from": self.from_, "type": self.type}
        if self.to is not None:
            d["to"] = self.to
        if self.data is not None:
            d["data"] = self.data
        if self.ice_candidates is not None:
            d["iceCandidates"] = list(self.ice_candidates)
        return d

    def to_json(self) -> str:
        """Encodes the signal as compact JSON text."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @staticmethod
    def from_json(raw: Union[str, bytes, bytearray]) -> "Signal":
        """
        Decodes one signal from a text or binary frame.

        Args:
            raw: The frame payload as received from the transport.

        Returns:
            The decoded Signal.

        Raises:
            DecodeError: If the payload is not a JSON object with string
                `from` and `type` fields, or an optional field has the
                wrong JSON type.
        """
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode(ENC)
            except UnicodeDecodeError as e:
                raise DecodeError(f"invalid_utf8: {e}") from e
        try:
            obj = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise DecodeError(f"invalid_json: {e}") from e

        if not isinstance(obj, dict):
            raise DecodeError("not_an_object")
        frm = obj.get("from")
        t = obj.get("type")
        if frm is None or t is None:
            raise DecodeError("missing_required_fields")
        if not isinstance(frm, str) or not isinstance(t, str):
            raise DecodeError("bad_header_types")

        to = obj.get("to")
        if to is not None and not isinstance(to, str):
            raise DecodeError("to_must_be_str")
        candidates = obj.get("iceCandidates")
        if candidates is not None and not isinstance(candidates, list):
            raise DecodeError("ice_candidates_must_be_list")

        return Signal(from_=frm, type=t, to=to, data=obj.get("data"), ice_candidates=candidates)

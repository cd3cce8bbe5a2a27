import json


class QRDecoder:
    """decode(frame) -> attendance payload dict, or None when the frame holds no usable code."""

    def decode(self, frame):
        raise NotImplementedError


class TextPayloadDecoder(QRDecoder):
    """
    Accepts frames the browser scanner has already decoded to text, e.g.
    '{"type": "attendance", "classId": 3}'.
    """

    def decode(self, frame):
        if isinstance(frame, (bytes, bytearray)):
            frame = frame.decode("utf-8", "replace")

        if isinstance(frame, dict):
            payload = frame
        else:
            try:
                payload = json.loads(frame)
            except (TypeError, ValueError):
                return None

        if not isinstance(payload, dict) or payload.get("type") != "attendance":
            return None
        return payload

import base64
import binascii
import random
import re
import string
import time
from typing import Optional, Tuple

_ID_ALPHABET = string.digits + string.ascii_lowercase
DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)

MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


def now_ms() -> int:
    """Return the current wall-clock instant in epoch milliseconds."""
    return int(time.time() * 1000)


def _base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ID_ALPHABET[rem])
    return "".join(reversed(digits))


def new_message_id(rng: Optional[random.Random] = None) -> str:
    """Purpose: Generate an opaque client-side message identifier.
    Inputs/Outputs: Optional random source; returns a short base-36 string.
    Side Effects / State: Reads the wall clock.
    Dependencies: Used by the message log, conversation session, and image flow.
    Failure Modes: None; collisions need the same random token in the same millisecond.
    If Removed: Messages cannot be addressed for streaming updates.
    Testing Notes: Generate many ids and verify uniqueness and charset.
    """
    # Seven random base-36 characters plus the last four of the clock.
    source = rng or random
    token = "".join(source.choice(_ID_ALPHABET) for _ in range(7))
    return token + _base36(now_ms())[-4:]


def to_data_uri(mime_type: str, data: bytes) -> str:
    """Render raw bytes as a base64 data URI."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def parse_data_uri(uri: str) -> Tuple[str, bytes]:
    """Purpose: Split a base64 data URI into MIME type and raw bytes.
    Inputs/Outputs: Input is a data URI string; output is (mime_type, bytes).
    Side Effects / State: None; pure function.
    Dependencies: Used by the proxy client and image download.
    Failure Modes: Raises ValueError on non-data URIs or invalid base64 payloads.
    If Removed: Proxy image responses and saved images cannot be decoded.
    Testing Notes: Round-trip with to_data_uri and feed malformed strings.
    """
    match = DATA_URI_RE.match((uri or "").strip())
    if not match:
        raise ValueError("Not a base64 data URI")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc
    return match.group("mime").lower(), data


def extension_for_mime(mime_type: str) -> str:
    return MIME_EXTENSIONS.get((mime_type or "").lower(), "png")

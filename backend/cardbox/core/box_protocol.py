"""Box Frame Protocol — fixed-order, delimited, length-bounded text frames for the box device.

Invariants:
    - A frame is ASCII, at most MAX_FRAME_BYTES bytes, optionally ending in one "\\n"
    - Fields are separated by "|" in a fixed order; the first field is the tag
    - Each tag has an exact field count; anything else is a BoxFrameError
    - Box ids: 1–32 of [A-Za-z0-9_-]; codes: well-formed pickup codes
    - encode_frame(decode_frame(s)) == s.rstrip("\\n") for every valid frame

Shapes:
    server→box  CODE|<code>|<box>       code-push
    box→server  CHECK|<box>             open-check
    server→box  OPEN|<code>  /  WAIT    open-check reply
    box→server  PICKUP|<code>|<box>     pickup-confirm
    server→box  OK|<ref>  /  NO|<reason>  pickup-confirm reply
    server→box  ERR|<reason>            malformed input
"""

import re
from dataclasses import dataclass

from cardbox.core.errors import BoxFrameError
from cardbox.core.pickup_code import is_well_formed_code


MAX_FRAME_BYTES: int = 64
DELIMITER: str = "|"

_BOX_ID = re.compile(r"^[A-Za-z0-9_-]{1,32}$")
_REASON = re.compile(r"^[a-z_]{1,40}$")
_REFERENCE = re.compile(r"^[A-Z0-9-]{1,8}$")


@dataclass(frozen=True)
class CodePush:
    code: str
    box_id: str


@dataclass(frozen=True)
class OpenCheck:
    box_id: str


@dataclass(frozen=True)
class OpenReply:
    code: str | None = None


@dataclass(frozen=True)
class PickupConfirm:
    code: str
    box_id: str


@dataclass(frozen=True)
class PickupReply:
    ok: bool
    detail: str


@dataclass(frozen=True)
class ErrorReply:
    reason: str


BoxFrame = CodePush | OpenCheck | OpenReply | PickupConfirm | PickupReply | ErrorReply


def is_valid_box_id(box_id: str | None) -> bool:
    return box_id is not None and bool(_BOX_ID.match(box_id))


def encode_frame(frame: BoxFrame) -> str:
    """Serialize one frame (without trailing newline)."""
    match frame:
        case CodePush(code=code, box_id=box_id):
            fields = ["CODE", code, box_id]
        case OpenCheck(box_id=box_id):
            fields = ["CHECK", box_id]
        case OpenReply(code=None):
            fields = ["WAIT"]
        case OpenReply(code=code):
            fields = ["OPEN", code]
        case PickupConfirm(code=code, box_id=box_id):
            fields = ["PICKUP", code, box_id]
        case PickupReply(ok=True, detail=detail):
            fields = ["OK", detail]
        case PickupReply(ok=False, detail=detail):
            fields = ["NO", detail]
        case ErrorReply(reason=reason):
            fields = ["ERR", reason]
        case _:
            raise TypeError(f"Not a box frame: {frame!r}")

    if any(DELIMITER in f or "\n" in f for f in fields):
        raise BoxFrameError("field contains a delimiter")
    text = DELIMITER.join(fields)
    if len(text.encode("ascii", errors="replace")) > MAX_FRAME_BYTES:
        raise BoxFrameError("frame too long")
    return text


def decode_frame(raw: str | bytes) -> BoxFrame:
    """Parse one frame. Raises BoxFrameError on any deviation."""
    if isinstance(raw, bytes):
        if len(raw) > MAX_FRAME_BYTES + 1:
            raise BoxFrameError("frame too long")
        try:
            raw = raw.decode("ascii")
        except UnicodeDecodeError:
            raise BoxFrameError("frame is not ASCII")
    if not raw.isascii():
        raise BoxFrameError("frame is not ASCII")
    if raw.endswith("\n"):
        raw = raw[:-1]
    if len(raw) > MAX_FRAME_BYTES:
        raise BoxFrameError("frame too long")
    if not raw:
        raise BoxFrameError("empty frame")
    if "\n" in raw or "\r" in raw:
        raise BoxFrameError("more than one frame")

    tag, *fields = raw.split(DELIMITER)
    match tag, fields:
        case "CODE", [code, box_id]:
            return CodePush(_code(code), _box(box_id))
        case "CHECK", [box_id]:
            return OpenCheck(_box(box_id))
        case "WAIT", []:
            return OpenReply(None)
        case "OPEN", [code]:
            return OpenReply(_code(code))
        case "PICKUP", [code, box_id]:
            return PickupConfirm(_code(code), _box(box_id))
        case "OK", [reference]:
            return PickupReply(True, _match(_REFERENCE, reference, "reference"))
        case "NO", [reason]:
            return PickupReply(False, _match(_REASON, reason, "reason"))
        case "ERR", [reason]:
            return ErrorReply(_match(_REASON, reason, "reason"))
        case ("CODE" | "CHECK" | "WAIT" | "OPEN" | "PICKUP" | "OK" | "NO" | "ERR"), _:
            raise BoxFrameError(f"wrong field count for {tag}")
    raise BoxFrameError("unknown tag")


def _code(value: str) -> str:
    if not is_well_formed_code(value):
        raise BoxFrameError("bad pickup code")
    return value


def _box(value: str) -> str:
    if not is_valid_box_id(value):
        raise BoxFrameError("bad box id")
    return value


def _match(pattern: re.Pattern, value: str, name: str) -> str:
    if not pattern.match(value):
        raise BoxFrameError(f"bad {name}")
    return value

"""Box Frame Protocol — encoding, strict decoding and rejection of malformed frames.

Tests cover:
    - Every frame kind encodes to its documented shape
    - decode_frame accepts str or bytes with an optional trailing newline
    - Unknown tags, wrong field counts, bad codes/box ids, oversize and
      non-ASCII input raise BoxFrameError
"""

import pytest

from cardbox.core.box_protocol import (
    MAX_FRAME_BYTES, CodePush, ErrorReply, OpenCheck, OpenReply, PickupConfirm,
    PickupReply, decode_frame, encode_frame, is_valid_box_id,
)
from cardbox.core.errors import BoxFrameError


@pytest.mark.parametrize("frame, text", [
    (CodePush("1234", "BOX_1"), "CODE|1234|BOX_1"),
    (OpenCheck("BOX_1"), "CHECK|BOX_1"),
    (OpenReply(None), "WAIT"),
    (OpenReply("4321"), "OPEN|4321"),
    (PickupConfirm("1111", "BOX-2"), "PICKUP|1111|BOX-2"),
    (PickupReply(True, "A1B2C3D4"), "OK|A1B2C3D4"),
    (PickupReply(False, "invalid_code"), "NO|invalid_code"),
    (ErrorReply("malformed_frame"), "ERR|malformed_frame"),
])
def test_encode_shapes(frame, text):
    assert encode_frame(frame) == text


def test_decode_accepts_trailing_newline_and_bytes():
    assert decode_frame("CHECK|BOX_1\n") == OpenCheck("BOX_1")
    assert decode_frame(b"PICKUP|1234|BOX_1\n") == PickupConfirm("1234", "BOX_1")
    assert decode_frame("WAIT") == OpenReply(None)


def test_encode_rejects_delimiter_in_field():
    with pytest.raises(BoxFrameError):
        encode_frame(ErrorReply("a|b"))


def test_encode_rejects_oversize_frame():
    with pytest.raises(BoxFrameError):
        encode_frame(ErrorReply("x" * MAX_FRAME_BYTES))


@pytest.mark.parametrize("raw", [
    "",
    "\n",
    "HELLO|BOX_1",
    "CHECK",
    "CHECK|BOX_1|extra",
    "WAIT|",
    "PICKUP|1235|BOX_1",
    "PICKUP|123|BOX_1",
    "PICKUP|1234|BOX 1",
    "CODE|1234|" + "B" * 33,
    "NO|Invalid Code",
    "CHECK|BOX_1\nCHECK|BOX_2",
    "CHECK|BOX_1\r",
    "CHECK|BÖX",
    "ERR|" + "a" * MAX_FRAME_BYTES,
])
def test_decode_rejects_malformed(raw):
    with pytest.raises(BoxFrameError):
        decode_frame(raw)


def test_decode_rejects_non_ascii_bytes():
    with pytest.raises(BoxFrameError):
        decode_frame("CHECK|BÖX".encode("utf-8"))


def test_box_frame_error_is_client_error():
    with pytest.raises(BoxFrameError) as exc_info:
        decode_frame("NOPE")
    assert exc_info.value.http_status == 400


@pytest.mark.parametrize("box_id, ok", [
    ("BOX_1", True),
    ("a-b_c", True),
    ("B" * 32, True),
    ("B" * 33, False),
    ("", False),
    ("box 1", False),
    (None, False),
])
def test_is_valid_box_id(box_id, ok):
    assert is_valid_box_id(box_id) is ok

import os
import re

import pytest

from stompwire import utils

CODEC_CASES = [
    ("stringa", "stringa"),
    ("stringb", "stringb"),
    ("stringc", "stringc"),
    ("stringd", "stringd"),
    ("stringe", "stringe"),
    ("stringf", "stringf"),
    ("stringg", "stringg"),
    ("stringh", "stringh"),
    ("\\\\", "\\"),
    ("\\n", "\n"),
    ("\\c", ":"),
    ("\\\\\\n\\c", "\\\n:"),
    ("\\c\\n\\\\", ":\n\\"),
    ("\\\\\\c", "\\:"),
    ("c\\cc", "c:c"),
    ("n\\nn", "n\nn"),
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("STOMP_"):
            monkeypatch.delenv(name)


@pytest.mark.parametrize(("encoded", "decoded"), CODEC_CASES)
def test_encode(encoded, decoded):
    assert utils.encode(decoded) == encoded


@pytest.mark.parametrize(("encoded", "decoded"), CODEC_CASES)
def test_decode(encoded, decoded):
    assert utils.decode(encoded) == decoded


@pytest.mark.parametrize(
    "text", ["a:b\\c\nd\re", "\\n", "::", "plain", "\\c\\\\n"]
)
def test_codec_round_trip(text):
    assert utils.decode(utils.encode(text)) == text


def test_carriage_return_codec():
    assert utils.encode("a\rb") == "a\\rb"
    assert utils.decode("a\\rb") == "a\rb"


def test_unknown_escape_untouched():
    assert utils.decode("a\\tb") == "a\\tb"


def test_hex_data_short_line():
    expected = "\n00000000  61 62 63" + " " * 42 + "|abc|\n"
    assert utils.hex_data(b"abc") == expected


def test_hex_data_full_line_and_nonprintable():
    data = b"Go is an open so\x00"
    dump = utils.hex_data(data)
    lines = dump.split("\n")
    assert lines[0] == ""
    assert lines[1] == (
        "00000000  47 6f 20 69 73 20 61 6e  20 6f 70 65 6e 20 73 6f  |Go is an open so|"
    )
    assert lines[2].startswith("00000010  00 ")
    assert lines[2].endswith("|.|")


def test_hex_data_empty():
    assert utils.hex_data(b"") == "\n"


def test_hex_data_truncated(monkeypatch):
    monkeypatch.setenv("STOMP_MAXBODYLENGTH", "2")
    assert utils.hex_data(b"abcdef").endswith("|ab|\n")


def test_sha1_known_value():
    assert utils.sha1("abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"


def test_uuid4_shape():
    first = utils.uuid4()
    assert len(first) == 36
    assert re.fullmatch(
        r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}", first
    )
    assert first != utils.uuid4() or False is True


@pytest.mark.parametrize(
    ("version", "expected"),
    [
        ("1.0", True),
        ("1.1", True),
        ("1.2", True),
        ("1.3", False),
        ("2.0", False),
        ("2.1", False),
    ],
)
def test_supported(version, expected):
    assert utils.supported(version) is expected


def test_protocols():
    assert utils.protocols() == ["1.0", "1.1", "1.2"]
    listed = utils.protocols()
    listed.append("9.9")
    assert utils.protocols() == ["1.0", "1.1", "1.2"]


def test_version():
    assert utils.version() == "v1.0.13-m.2"
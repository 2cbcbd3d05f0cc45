import pytest

from netprobe.targets import MAX_TARGET_LENGTH, normalize_target


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.2.3.4", "1.2.3.4"),
        ("hostname", "hostname"),
        ("::1", "[::1]"),
        ("[::1]:8080", "[::1]:8080"),
        ("  example.com:443  ", "example.com:443"),
    ],
)
def test_documented_forms(raw, expected):
    assert normalize_target(raw) == expected


def test_control_characters_are_removed():
    assert normalize_target("10.0.0.1\x00") == "10.0.0.1"


def test_bracketed_form_is_idempotent():
    once = normalize_target("fe80::1")
    assert normalize_target(once) == once


def test_ipv6_with_dotted_tail_is_not_bracketed():
    assert normalize_target("::ffff:1.2.3.4") == "::ffff:1.2.3.4"


@pytest.mark.parametrize(
    "raw, message",
    [
        ("", "cannot be empty"),
        ("   ", "cannot be empty"),
        ("\x01\x02", "only invalid characters"),
        ("a..b", "path traversal"),
        ("http://host", "path traversal"),
        ("[::1", "missing closing bracket"),
        ("[]", "empty address"),
        ("zz::1", "Invalid IPv6 address format"),
        ("host name", "contains spaces"),
        ("host$name", "invalid characters"),
    ],
)
def test_rejected_targets(raw, message):
    with pytest.raises(ValueError, match=message):
        normalize_target(raw)


def test_length_limit():
    assert normalize_target("a" * MAX_TARGET_LENGTH) == "a" * MAX_TARGET_LENGTH
    with pytest.raises(ValueError, match="Target too long"):
        normalize_target("a" * (MAX_TARGET_LENGTH + 1))
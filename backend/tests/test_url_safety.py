import pytest

from content_mapper.errors import UnsafeUrlError
from content_mapper.url_safety import is_safe_url, validate_and_sanitize_url


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("example.com", "https://example.com/"),
        ("  https://Example.com/events?page=2  ", "https://example.com/events?page=2"),
        ("http://user:pw@example.com:8080/a#frag", "http://example.com:8080/a"),
        ("HTTPS://example.com", "https://example.com/"),
    ],
)
def test_sanitizes(raw, expected):
    assert validate_and_sanitize_url(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        "ftp://example.com",
        "javascript://alert(1)",
        "file:///etc/passwd",
        "http://localhost",
        "http://app.localhost/",
        "http://127.0.0.1:9000",
        "http://[::1]/",
        "http://10.1.2.3",
        "http://192.168.0.10",
        "http://172.16.5.4",
        "http://169.254.169.254/latest/meta-data",
        "http://0.0.0.0",
        "http://2130706433/",
        "http://127.1/",
        "http://0x7f.0.0.1/",
        "http://0177.0.0.1/",
        "http://[::ffff:127.0.0.1]/",
        "http://[::ffff:a9fe:a9fe]/latest/meta-data",
        "http://example.com:notaport/",
        "https://",
    ],
)
def test_rejects(raw):
    with pytest.raises(UnsafeUrlError):
        validate_and_sanitize_url(raw)
    assert is_safe_url(raw) is False


def test_public_ip_is_allowed():
    assert is_safe_url("http://93.184.216.34/")


@pytest.mark.parametrize("host", ["cafe.be", "dead.beef.example", "face.com"])
def test_hex_looking_hostnames_are_not_mistaken_for_addresses(host):
    assert is_safe_url(f"https://{host}/")

"""Tests for image source detection, sniffing and validation."""

import base64

import pytest

from notepub.errors import NotePubImageParseError, NotePubImageSizeError, NotePubImageTypeError
from notepub.image import detect_image_source, parse_data_uri, sniff_mime, validate_image
from notepub.models import ImageSourceType


class TestDetectImageSource:
    @pytest.mark.parametrize("src,expected", [
        ("https://e.com/a.png", ImageSourceType.EXTERNAL_URL),
        ("http://e.com/a.png", ImageSourceType.EXTERNAL_URL),
        ("data:image/png;base64,AAAA", ImageSourceType.DATA_URI),
        ("./img/a.png", ImageSourceType.LOCAL_FILE),
        ("photo.png", ImageSourceType.LOCAL_FILE),
        ("/abs/a.png", ImageSourceType.LOCAL_FILE),
        ("", ImageSourceType.UNKNOWN),
        ("   ", ImageSourceType.UNKNOWN),
    ])
    def test_classification(self, src, expected):
        assert detect_image_source(src) is expected


class TestSniffMime:
    @pytest.mark.parametrize("data,expected", [
        (b"\x89PNG\r\n\x1a\n....", "image/png"),
        (b"\xff\xd8\xff\xe0", "image/jpeg"),
        (b"GIF89a....", "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"  <svg xmlns='x'/>", "image/svg+xml"),
    ])
    def test_known(self, data, expected):
        assert sniff_mime(data) == expected

    def test_riff_without_webp(self):
        assert sniff_mime(b"RIFF\x00\x00\x00\x00WAVEfmt ") is None

    def test_unknown(self):
        assert sniff_mime(b"hello") is None


class TestValidateImage:
    def test_png(self, config, png_bytes):
        assert validate_image(png_bytes, "a.png", config) == "image/png"

    def test_extension_fallback(self, config):
        assert validate_image(b"????", "a.jpg", config) == "image/jpeg"

    def test_size_checked_first(self, config):
        config.image_max_size_bytes = 4
        with pytest.raises(NotePubImageSizeError) as info:
            validate_image(b"not an image at all", "a.txt", config)
        assert info.value.context["max_bytes"] == 4

    def test_exact_limit_allowed(self, config, png_bytes):
        config.image_max_size_bytes = len(png_bytes)
        assert validate_image(png_bytes, "a.png", config) == "image/png"

    def test_disallowed(self, config):
        with pytest.raises(NotePubImageTypeError) as info:
            validate_image(b"BM\x00\x00", "a.bmp", config)
        assert info.value.context["detected_mime"] == "image/bmp"


class TestParseDataUri:
    def test_base64(self, png_bytes):
        uri = "data:image/png;base64," + base64.b64encode(png_bytes).decode()
        assert parse_data_uri(uri) == ("image/png", png_bytes)

    def test_percent_encoded(self):
        assert parse_data_uri("data:image/svg+xml,%3Csvg%3E") == ("image/svg+xml", b"<svg>")

    @pytest.mark.parametrize("uri", ["data:image/png;base64,@@@", "not-a-uri"])
    def test_malformed(self, uri):
        with pytest.raises(NotePubImageParseError):
            parse_data_uri(uri)

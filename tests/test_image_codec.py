# tests/test_image_codec.py
"""Tests for resize_proxy/infra/image_codec.py — decode guards and JPEG output."""
from __future__ import annotations

import io

import pytest
from PIL import Image

from resize_proxy.core.errors import DecodeError
from resize_proxy.infra import image_codec
from resize_proxy.infra.image_codec import decode_image, encode_jpeg


class TestDecodeImage:
    def test_decodes_jpeg(self, jpeg_400x400):
        img = decode_image(jpeg_400x400)
        assert img.size == (400, 400)
        assert img.mode == "RGB"

    def test_png_alpha_is_kept(self, png_with_alpha):
        img = decode_image(png_with_alpha)
        assert img.size == (64, 32)
        assert img.mode == "RGBA"

    def test_palette_image_normalized(self, encode_image):
        pal = Image.new("P", (8, 8), 3)
        img = decode_image(encode_image(pal, "PNG"))
        assert img.mode == "RGB"

    @pytest.mark.parametrize("data", [b"", b"not an image", b"\x89PNG\r\n\x1a\n"])
    def test_rejects_garbage(self, data):
        with pytest.raises(DecodeError):
            decode_image(data)

    def test_rejects_truncated(self, jpeg_400x400):
        with pytest.raises(DecodeError):
            decode_image(jpeg_400x400[: len(jpeg_400x400) // 2])

    def test_rejects_decompression_bomb(self, encode_image, monkeypatch):
        data = encode_image(Image.new("RGB", (200, 200)), "PNG")
        # Pillow raises DecompressionBombError above twice the limit
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10_000)
        with pytest.raises(DecodeError):
            decode_image(data)

    def test_rejects_image_between_one_and_two_times_limit(self, encode_image, monkeypatch):
        # 50x30 = 1500 pixels: Pillow only warns below 2x the limit
        data = encode_image(Image.new("RGB", (50, 30)), "PNG")
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", Image.MAX_IMAGE_PIXELS)
        image_codec.configure_decoder(1000)
        with pytest.warns(Image.DecompressionBombWarning):
            with pytest.raises(DecodeError, match="exceeds limit"):
                decode_image(data)

    def test_image_at_limit_is_accepted(self, encode_image, monkeypatch):
        data = encode_image(Image.new("RGB", (40, 25)), "PNG")
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", Image.MAX_IMAGE_PIXELS)
        image_codec.configure_decoder(1000)
        assert decode_image(data).size == (40, 25)

    def test_configure_decoder_sets_limit(self, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", Image.MAX_IMAGE_PIXELS)
        image_codec.configure_decoder(1234)
        assert Image.MAX_IMAGE_PIXELS == 1234


class TestEncodeJpeg:
    def test_output_is_jpeg(self, make_image):
        data = encode_jpeg(make_image(40, 30))
        assert data[:2] == b"\xff\xd8"
        with Image.open(io.BytesIO(data)) as out:
            assert out.format == "JPEG"
            assert out.size == (40, 30)

    def test_alpha_flattened_onto_white(self):
        img = Image.new("RGBA", (10, 10), (0, 0, 0, 0))
        data = encode_jpeg(img)
        with Image.open(io.BytesIO(data)) as out:
            assert out.mode == "RGB"
            r, g, b = out.getpixel((5, 5))
            assert min(r, g, b) > 240

    def test_grayscale_stays_grayscale(self):
        data = encode_jpeg(Image.new("L", (10, 10), 128))
        with Image.open(io.BytesIO(data)) as out:
            assert out.mode == "L"

    def test_quality_changes_size(self, make_image):
        img = make_image(200, 200)
        img.paste((0, 255, 0), (50, 50, 150, 150))
        low = encode_jpeg(img, quality=10)
        high = encode_jpeg(img, quality=95)
        assert len(low) < len(high)

    def test_input_not_mutated(self):
        img = Image.new("RGBA", (4, 4), (255, 0, 0, 128))
        encode_jpeg(img)
        assert img.mode == "RGBA"

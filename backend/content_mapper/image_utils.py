"""Screenshot encoding for vision prompts."""
import base64
import io
from dataclasses import dataclass

from PIL import Image


@dataclass(frozen=True)
class ImagePayload:
    data: str  # base64
    media_type: str

    def to_content_block(self) -> dict:
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": self.media_type, "data": self.data},
        }


def _flatten_alpha(img: Image.Image) -> Image.Image:
    if img.mode == "RGBA":
        bg = Image.new("RGB", img.size, (255, 255, 255))
        bg.paste(img, mask=img.split()[3])
        return bg
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def encode_screenshot(png_bytes: bytes, max_width: int = 1280, max_height: int = 8000,
                      quality: int = 75) -> ImagePayload:
    """
    Downscale and re-encode a screenshot as JPEG.
    Full-page captures can be very tall, so height is capped too (top of page kept).
    """
    img = Image.open(io.BytesIO(png_bytes))
    w, h = img.size
    if w > max_width:
        h = int(h * max_width / w)
        w = max_width
        img = img.resize((w, h), Image.LANCZOS)
    if h > max_height:
        img = img.crop((0, 0, w, max_height))

    buf = io.BytesIO()
    _flatten_alpha(img).save(buf, format="JPEG", quality=quality, optimize=True)
    return ImagePayload(data=base64.b64encode(buf.getvalue()).decode(), media_type="image/jpeg")

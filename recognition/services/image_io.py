# recognition/services/image_io.py
import base64
import binascii
import io
import re
from pathlib import Path
from typing import Tuple
from urllib.request import Request, urlopen

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

DATA_URL_RE = re.compile(r"^data:image/(?P<subtype>png|jpeg|jpg|webp);base64,(?P<payload>.+)$", re.DOTALL)


def decode_image_bytes(content: bytes) -> np.ndarray:
    """Байты (png/jpeg/webp) -> BGR uint8 с учётом EXIF-ориентации."""
    if not content:
        raise ValueError("Empty image data")
    try:
        im = Image.open(io.BytesIO(content))
        im = ImageOps.exif_transpose(im)
        im = im.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Failed to decode image: {e}") from e
    return cv2.cvtColor(np.array(im), cv2.COLOR_RGB2BGR)


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """data:image/<type>;base64,... -> (content_type, bytes)."""
    m = DATA_URL_RE.match(data_url or "")
    if not m:
        raise ValueError("Not an image data URL")
    try:
        content = base64.b64decode(m.group("payload"), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Broken base64 payload: {e}") from e
    return f"image/{m.group('subtype')}", content


def imread_exif(path) -> np.ndarray:
    p = Path(path)
    if not p.is_file():
        raise ValueError(f"Failed to read image: {path}")
    return decode_image_bytes(p.read_bytes())


def fetch_url(url: str, timeout: int = 20) -> bytes:
    req = Request(url, headers={"User-Agent": "eyeid/1.0"})
    with urlopen(req, timeout=timeout) as resp:
        return resp.read()


def load_image_source(source: str, base_dir: Path, timeout: int = 20) -> np.ndarray:
    """Профильное изображение: http(s)-ссылка или путь относительно base_dir."""
    if source.startswith(("http://", "https://")):
        return decode_image_bytes(fetch_url(source, timeout=timeout))
    return imread_exif(Path(base_dir) / source)


def imwrite(path, img: np.ndarray) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    ok = cv2.imwrite(str(path), img)
    if not ok:
        raise ValueError(f"Failed to write image: {path}")

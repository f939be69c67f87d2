import logging
from typing import List, Optional

import zxingcpp
from PIL import Image

logger = logging.getLogger(__name__)


def decode_all(image: Image.Image) -> List[str]:
    """Return the text of every barcode or QR code found in ``image``."""
    gray = image if image.mode == "L" else image.convert("L")
    results = zxingcpp.read_barcodes(gray)
    return [result.text for result in results if result.text]


def decode_first(image: Image.Image) -> Optional[str]:
    codes = decode_all(image)
    if len(codes) > 1:
        logger.debug("Frame contained %d codes, using the first", len(codes))
    return codes[0].strip() if codes else None

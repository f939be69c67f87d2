import logging
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Sequence

import barcode
import qrcode
from barcode.writer import ImageWriter, SVGWriter
from PIL import Image, ImageDraw, ImageFont

from .parts import PartRecord

logger = logging.getLogger(__name__)

LAYOUT_BELOW = "Below code"
LAYOUT_RIGHT = "Right of code"

LAYOUTS = (LAYOUT_BELOW, LAYOUT_RIGHT)

BARCODE_FORMATS = ("PNG", "SVG", "EPS")
QR_FORMATS = ("PNG", "EPS")

# the raster writer cannot paint a bar narrower than one pixel; keep a margin
MIN_MODULE_PIXELS = 2


@dataclass
class LabelOptions:
    dpi: int = 300
    font_size: int = 11
    layout: str = LAYOUT_BELOW
    module_width: float = 0.15
    module_height: int = 8
    quiet_zone: float = 1.5
    write_text: bool = True

    def effective_module_width(self) -> float:
        """Module width in mm, widened so each bar covers at least ``MIN_MODULE_PIXELS``."""
        return max(float(self.module_width), MIN_MODULE_PIXELS * 25.4 / self.dpi)

    def barcode_writer_options(self) -> dict:
        return {
            "quiet_zone": float(self.quiet_zone),
            "module_height": int(self.module_height),
            "module_width": self.effective_module_width(),
            "write_text": self.write_text,
            "dpi": int(self.dpi),
        }


def label_lines(part: PartRecord) -> List[str]:
    lines = [part.part_name, part.part_number]
    location = part.location.display()
    if location:
        lines.append(f"Loc: {location}")
    return [line for line in lines if line]


def render_barcode(part: PartRecord, options: LabelOptions) -> Image.Image:
    code39_cls = barcode.get_barcode_class("code39")
    code39 = code39_cls(part.label_code, writer=ImageWriter(), add_checksum=False)
    buffer = BytesIO()
    code39.write(buffer, options=options.barcode_writer_options())
    base = Image.open(BytesIO(buffer.getvalue())).convert("RGB")
    return attach_label(base, label_lines(part), layout=options.layout, font_size=options.font_size)


def render_qr(part: PartRecord, options: LabelOptions) -> Image.Image:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=6,
        border=2,
    )
    qr.add_data(part.label_code)
    qr.make(fit=True)
    base = qr.make_image(fill_color="black", back_color="white").convert("RGB")
    return attach_label(base, label_lines(part), layout=options.layout, font_size=options.font_size)


def _load_font(font_size: int):
    # DejaVuSans honours the requested size; the bitmap default does not.
    for candidate in ("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", "DejaVuSans.ttf"):
        try:
            return ImageFont.truetype(candidate, font_size)
        except OSError:
            continue
    return ImageFont.load_default()


def attach_label(base: Image.Image, lines: Sequence[str], *, layout: str, font_size: int) -> Image.Image:
    if not lines:
        return base
    font = _load_font(font_size)
    padding = 4
    line_height = font.getbbox("Ag")[3]
    text_width = max(font.getbbox(line)[2] for line in lines) + padding * 2

    if layout == LAYOUT_RIGHT:
        width = base.width + text_width
        height = max(base.height, (line_height + 4) * len(lines) + padding * 2)
        canvas = Image.new("RGB", (width, height), "white")
        canvas.paste(base, (0, (height - base.height) // 2))
        draw = ImageDraw.Draw(canvas)
        x_text = base.width + padding
        y_start = (height - (line_height + 4) * len(lines)) // 2
        for i, line in enumerate(lines):
            draw.text((x_text, y_start + i * (line_height + 4)), line, fill="black", font=font)
    else:
        width = max(base.width, text_width)
        height = base.height + padding + (line_height + 4) * len(lines)
        canvas = Image.new("RGB", (width, height), "white")
        canvas.paste(base, ((width - base.width) // 2, 0))
        draw = ImageDraw.Draw(canvas)
        y_start = base.height + padding
        for i, line in enumerate(lines):
            draw.text((padding, y_start + i * (line_height + 4)), line, fill="black", font=font)
    return canvas


def default_filename(part: PartRecord, kind: str, fmt: str, now: Optional[datetime] = None) -> str:
    safe_name = "".join(ch if ch.isalnum() else "_" for ch in part.part_name)[:40] or "part"
    safe_code = "".join(ch if ch.isalnum() else "_" for ch in part.label_code)[:20] or "code"
    ts = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{safe_name}_{safe_code}_{kind}_{ts}.{fmt.lower()}"


def save_label(part: PartRecord, kind: str, path: Path, options: LabelOptions) -> Path:
    """
    Write a barcode or QR label for ``part`` to ``path``.

    The format follows the file suffix; SVG barcodes are drawn as vectors,
    everything else is rasterised at ``options.dpi``.
    """
    path = Path(path)
    ext = path.suffix.lower()
    if kind not in ("barcode", "qr"):
        raise ValueError(f"Unknown label kind: {kind}")
    allowed = BARCODE_FORMATS if kind == "barcode" else QR_FORMATS
    if ext.lstrip(".").upper() not in allowed:
        raise ValueError(f"{kind} labels cannot be saved as {ext or 'a file without extension'}")

    path.parent.mkdir(parents=True, exist_ok=True)
    if kind == "barcode" and ext == ".svg":
        code39_cls = barcode.get_barcode_class("code39")
        code39 = code39_cls(part.label_code, writer=SVGWriter(), add_checksum=False)
        # python-barcode appends the extension itself
        written = code39.save(str(path.with_suffix("")), options=options.barcode_writer_options())
        logger.info("Saved barcode label to %s", written)
        return Path(written)

    image = render_barcode(part, options) if kind == "barcode" else render_qr(part, options)
    fmt_param = "EPS" if ext == ".eps" else "PNG"
    image.save(path, format=fmt_param, dpi=(options.dpi, options.dpi))
    logger.info("Saved %s label to %s", kind, path)
    return path

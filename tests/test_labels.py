from datetime import datetime

import pytest
from PIL import Image

from conftest import make_part
from parts_scanner.labels import (
    LAYOUT_RIGHT,
    MIN_MODULE_PIXELS,
    LabelOptions,
    default_filename,
    label_lines,
    render_barcode,
    render_qr,
    save_label,
)
from parts_scanner.parts import PartLocation


def test_label_lines_include_location_when_known():
    part = make_part(part_number="PART-9", part_name="Fuel Pump")
    assert label_lines(part) == ["Fuel Pump", "PART-9", "Loc: Main / A / R1 / B1"]

    bare = make_part(part_number="PART-9", part_name="Fuel Pump", location=PartLocation())
    assert label_lines(bare) == ["Fuel Pump", "PART-9"]


def test_default_filename_is_sanitised():
    part = make_part(part_number="PART/2025 01", part_name="Brake pad (front)")
    name = default_filename(part, "qr", "PNG", now=datetime(2025, 3, 4, 5, 6, 7))
    assert name == "Brake_pad__front__PART_2025_01_qr_20250304_050607.png"


def test_labels_extend_the_code_image():
    part = make_part(part_number="PART-77")
    options = LabelOptions(dpi=100)

    below = render_qr(part, options)
    right = render_qr(part, LabelOptions(dpi=100, layout=LAYOUT_RIGHT))
    assert below.mode == "RGB"
    assert right.width > below.width
    assert below.height > right.height

    barcode_image = render_barcode(part, options)
    assert barcode_image.mode == "RGB"
    assert barcode_image.height > options.module_height


def test_save_png_labels(tmp_path):
    part = make_part(part_number="PART-77")
    options = LabelOptions(dpi=100)

    qr_path = save_label(part, "qr", tmp_path / "qr.png", options)
    barcode_path = save_label(part, "barcode", tmp_path / "out" / "barcode.png", options)

    with Image.open(qr_path) as img:
        assert img.format == "PNG"
    with Image.open(barcode_path) as img:
        assert img.format == "PNG"


def test_save_svg_barcode(tmp_path):
    written = save_label(make_part(part_number="PART-77"), "barcode", tmp_path / "code.svg", LabelOptions())
    assert written.suffix == ".svg"
    assert "<svg" in written.read_text(encoding="utf-8")


@pytest.mark.parametrize(
    "kind,filename",
    [("qr", "label.svg"), ("barcode", "label.jpg"), ("barcode", "label"), ("sticker", "label.png")],
)
def test_save_rejects_unsupported_targets(tmp_path, kind, filename):
    with pytest.raises(ValueError):
        save_label(make_part(), kind, tmp_path / filename, LabelOptions())


@pytest.mark.parametrize("dpi", [72, 100, 150, 300, 600])
def test_barcode_export_at_any_dpi(tmp_path, dpi):
    options = LabelOptions(dpi=dpi)
    path = save_label(make_part(part_number="PART-2025-001"), "barcode", tmp_path / "code.png", options)

    with Image.open(path) as img:
        assert img.width > 0
    assert options.effective_module_width() * dpi / 25.4 >= MIN_MODULE_PIXELS - 1e-9


def test_module_width_kept_when_wide_enough():
    options = LabelOptions(dpi=600, module_width=0.15)
    assert options.barcode_writer_options()["module_width"] == 0.15
    assert LabelOptions(dpi=72).barcode_writer_options()["module_width"] > 0.15

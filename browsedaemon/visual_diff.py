"""Screenshot comparison against stored baseline images."""

from __future__ import annotations

import io
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Tuple, Union

from PIL import Image

MISMATCH_COLOR = (255, 0, 0, 200)
CONTEXT_ALPHA = 80


@dataclass
class ImageComparison:
    """Result of a pixel-by-pixel comparison of two equally sized images."""

    diff_pixel_count: int
    total_pixels: int
    similarity: float
    diff_image: Image.Image
    width: int
    height: int


def sanitize_name(name: str) -> str:
    """Replace every character that is not alphanumeric, '-' or '_' with '_'."""
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in name)


def compare_images(baseline: Image.Image, current: Image.Image, threshold: float) -> ImageComparison:
    """Compare two images channel by channel; ``threshold`` is a 0-1 tolerance."""
    base = baseline.convert("RGBA")
    cur = current.convert("RGBA")
    if base.size != cur.size:
        raise ValueError(
            f"image sizes differ: {base.width}x{base.height} vs {cur.width}x{cur.height}"
        )
    limit = int(min(max(threshold * 255.0, 0.0), 255.0))
    diff_pixels = []
    diff_count = 0
    for bp, cp in zip(base.getdata(), cur.getdata()):
        if any(abs(b - c) > limit for b, c in zip(bp, cp)):
            diff_count += 1
            diff_pixels.append(MISMATCH_COLOR)
        else:
            diff_pixels.append((cp[0], cp[1], cp[2], CONTEXT_ALPHA))
    diff_image = Image.new("RGBA", cur.size)
    diff_image.putdata(diff_pixels)
    total = cur.width * cur.height
    similarity = 1.0 - diff_count / total if total > 0 else 1.0
    return ImageComparison(
        diff_pixel_count=diff_count,
        total_pixels=total,
        similarity=similarity,
        diff_image=diff_image,
        width=cur.width,
        height=cur.height,
    )


def _decode(data: bytes, what: str) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except OSError as exc:
        raise ValueError(f"failed to decode {what}: {exc}") from exc
    return image.convert("RGBA")


def handle_visual_diff(
    screenshot_bytes: bytes,
    params: Mapping[str, Any],
    baselines_dir: Union[str, Path],
) -> dict:
    """Compare a PNG screenshot with the named baseline, creating it when absent."""
    name = params.get("name")
    if not isinstance(name, str):
        name = "default"
    threshold = params.get("threshold")
    if not isinstance(threshold, (int, float)) or isinstance(threshold, bool):
        threshold = 0.1
    update_baseline = params.get("update_baseline") is True

    current = _decode(screenshot_bytes, "screenshot")

    directory = Path(baselines_dir)
    directory.mkdir(parents=True, exist_ok=True)
    sanitized = sanitize_name(name)
    baseline_path = directory / f"{sanitized}.png"

    if update_baseline or not baseline_path.exists():
        baseline_path.write_bytes(screenshot_bytes)
        return {
            "status": "baseline_updated" if update_baseline else "baseline_created",
            "baselinePath": str(baseline_path),
            "similarity": 1.0,
            "diffPixelCount": 0,
            "width": current.width,
            "height": current.height,
        }

    baseline = _decode(baseline_path.read_bytes(), "baseline")
    bw, bh = baseline.size
    cw, ch = current.size
    if (bw, bh) != (cw, ch):
        return {
            "status": "dimension_mismatch",
            "baselinePath": str(baseline_path),
            "similarity": 0.0,
            "diffPixelCount": max(bw * bh, cw * ch),
            "baselineSize": f"{bw}x{bh}",
            "currentSize": f"{cw}x{ch}",
        }

    comparison = compare_images(baseline, current, threshold)
    diff_path = None
    if comparison.diff_pixel_count > 0:
        path = directory / f"{sanitized}-diff.png"
        comparison.diff_image.save(path, format="PNG")
        diff_path = str(path)

    return {
        "status": "match" if comparison.diff_pixel_count == 0 else "changed",
        "baselinePath": str(baseline_path),
        "diffPath": diff_path,
        "similarity": math.floor(comparison.similarity * 10000.0 + 0.5) / 10000.0,
        "diffPixelCount": comparison.diff_pixel_count,
        "totalPixels": comparison.total_pixels,
        "threshold": threshold,
        "width": cw,
        "height": ch,
    }


def zoom_output_size(width: float, height: float, scale: float) -> Tuple[int, int]:
    """Pixel size of a captured region after scaling, truncated and never negative."""
    return max(0, int(width * scale)), max(0, int(height * scale))
"""滑块拼图生成

从背景图上按拼图形状切出一块，背景留下带描边的暗色凹槽，
拼图块保留该位置的原始像素。生成结果只含图片和缺口坐标，不落库。
"""

import base64
import logging
import random
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO
from pathlib import Path
from typing import Protocol

import numpy as np
from PIL import Image, ImageChops, ImageDraw, ImageFilter, ImageOps

from backend.app.services.captcha_config import CaptchaConfig
from backend.app.services.captcha_errors import PuzzleGenerationError

logger = logging.getLogger(__name__)

_SLOT_SHADE = 0.3  # 凹槽亮度系数
_SLOT_OUTLINE_ALPHA = 180
_PIECE_HIGHLIGHT = (60, 60, 60)  # 拼图块描边提亮
_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp", ".bmp"}


class BackgroundSource(Protocol):
    def load(self, width: int, height: int) -> Image.Image: ...


class ProceduralBackground:
    """随机色相渐变 + 噪点 + 半透明色块"""

    def __init__(self, blobs: int = 6, noise: int = 10) -> None:
        self.blobs = blobs
        self.noise = noise

    def load(self, width: int, height: int) -> Image.Image:
        rng = np.random.default_rng()
        xs, ys = np.meshgrid(np.arange(width), np.arange(height))

        hue = (rng.uniform(0, 360) + xs / width * 60) % 360 / 360
        sat = 0.40 + ys / height * 0.30
        val = 0.65 + np.sin((xs + ys) * 0.05) * 0.15
        channels = [
            Image.fromarray((channel * 255).astype(np.uint8))
            for channel in (hue, sat, val)
        ]
        rgb = np.asarray(Image.merge("HSV", channels).convert("RGB"), dtype=np.int16)

        # 三个通道使用同一噪点，避免出现彩色杂点
        noise = rng.integers(-self.noise, self.noise, size=(height, width, 1))
        rgb = np.clip(rgb + noise, 0, 255).astype(np.uint8)
        image = Image.fromarray(rgb).convert("RGBA")

        overlay = Image.new("RGBA", image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        for _ in range(self.blobs):
            cx, cy = int(rng.integers(0, width)), int(rng.integers(0, height))
            radius = int(rng.integers(20, 60))
            color = tuple(int(c) for c in rng.integers(55, 255, size=3))
            draw.ellipse(
                (cx - radius, cy - radius, cx + radius, cy + radius),
                fill=(*color, 80),
            )
        overlay = overlay.filter(ImageFilter.GaussianBlur(radius=8))
        return Image.alpha_composite(image, overlay).convert("RGB")


class DirectoryBackground:
    """从目录中随机挑选一张图片作为背景，并裁剪缩放到目标尺寸"""

    def __init__(self, directory: Path, rng: random.Random | None = None) -> None:
        self.directory = Path(directory)
        self._rng = rng or random.SystemRandom()

    def load(self, width: int, height: int) -> Image.Image:
        candidates = sorted(
            path
            for path in self.directory.iterdir()
            if path.is_file() and path.suffix.lower() in _IMAGE_SUFFIXES
        )
        if not candidates:
            raise PuzzleGenerationError(f"背景图目录中没有可用图片: {self.directory}")

        path = self._rng.choice(candidates)
        with Image.open(path) as img:
            return ImageOps.fit(img.convert("RGB"), (width, height))


def default_background_source(config: CaptchaConfig) -> BackgroundSource:
    if config.background_dir is not None:
        return DirectoryBackground(config.background_dir)
    return ProceduralBackground()


@lru_cache(maxsize=8)
def puzzle_mask(size: int) -> Image.Image:
    """拼图形状遮罩：圆角主体 + 顶部和右侧各一个凸起，整体不超出 size×size。

    返回的是缓存对象，调用方不得修改。
    """
    knob = max(2, size // 6)
    radius = max(1, size // 8)
    mask = Image.new("L", (size, size), 0)
    draw = ImageDraw.Draw(mask)

    left, top, right, bottom = 0, knob, size - knob - 1, size - 1
    draw.rounded_rectangle((left, top, right, bottom), radius=radius, fill=255)

    cx = (left + right) // 2
    cy = (top + bottom) // 2
    draw.ellipse((cx - knob, top - knob, cx + knob, top + knob), fill=255)
    draw.ellipse((right - knob, cy - knob, right + knob, cy + knob), fill=255)
    return mask


@lru_cache(maxsize=8)
def puzzle_border(size: int) -> Image.Image:
    """遮罩的一像素内描边"""
    mask = puzzle_mask(size)
    return ImageChops.subtract(mask, mask.filter(ImageFilter.MinFilter(3)))


def cut_piece(
    background: Image.Image, x: int, y: int, size: int
) -> tuple[Image.Image, Image.Image]:
    """切出拼图块，返回 (带凹槽的背景, RGBA 拼图块)"""
    mask = puzzle_mask(size)
    border = puzzle_border(size)
    box = (x, y, x + size, y + size)
    region = background.crop(box)

    piece = region.convert("RGBA")
    highlight = ImageChops.add(region, Image.new("RGB", region.size, _PIECE_HIGHLIGHT))
    piece.paste(highlight, (0, 0), border)
    piece.putalpha(mask)

    shadow = region.point(lambda v: int(v * _SLOT_SHADE))
    slot = Image.composite(shadow, region, mask)
    outline_mask = border.point(lambda v: v * _SLOT_OUTLINE_ALPHA // 255)
    slot = Image.composite(Image.new("RGB", region.size, (255, 255, 255)), slot, outline_mask)

    slotted = background.copy()
    slotted.paste(slot, box)
    return slotted, piece


def to_data_url(image: Image.Image) -> str:
    """将图片编码为 PNG data URL"""
    buf = BytesIO()
    image.save(buf, format="PNG")
    b64 = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{b64}"


@dataclass(frozen=True)
class Puzzle:
    background: Image.Image
    piece: Image.Image
    target_x: int
    target_y: int


class PuzzleGenerator:
    def __init__(
        self,
        config: CaptchaConfig,
        source: BackgroundSource | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.source = source or default_background_source(config)
        # 缺口位置必须不可预测
        self._rng = rng or random.SystemRandom()

    def pick_position(self) -> tuple[int, int]:
        """随机缺口位置：完整落在图内、离边缘留白，并与滑块起点保持最小距离"""
        x = self._rng.randint(*self.config.x_range)
        y = self._rng.randint(*self.config.y_range)
        return x, y

    def generate(self) -> Puzzle:
        cfg = self.config
        size = (cfg.image_width, cfg.image_height)
        try:
            background = self.source.load(*size).convert("RGB")
            if background.size != size:
                background = ImageOps.fit(background, size)
            x, y = self.pick_position()
            slotted, piece = cut_piece(background, x, y, cfg.piece_size)
        except PuzzleGenerationError:
            raise
        except (OSError, ValueError) as exc:
            raise PuzzleGenerationError(f"拼图生成失败: {exc}") from exc

        logger.debug("拼图已生成: x=%d, y=%d", x, y)
        return Puzzle(background=slotted, piece=piece, target_x=x, target_y=y)

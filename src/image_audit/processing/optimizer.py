"""图片优化协作者：JPEG 有损重编码、PNG 调色板量化。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from image_audit.core.config import OptimizeConfig
from image_audit.core.exceptions import ImageOptimizeError
from image_audit.core.models import OptimizedFile

LOGGER = logging.getLogger(__name__)


class Optimizer(Protocol):
    """对单个文件执行优化，返回产出文件列表；无法改进时返回空列表。"""

    def optimize(self, input_path: Path, output_dir: Path) -> list[OptimizedFile]:
        ...


class PillowOptimizer:
    """基于 Pillow 的优化实现。"""

    def __init__(self, config: OptimizeConfig) -> None:
        self.config = config

    def optimize(self, input_path: Path, output_dir: Path) -> list[OptimizedFile]:
        try:
            with Image.open(input_path) as img:
                img.load()
                image_format = img.format
                if image_format not in {"JPEG", "PNG"}:
                    LOGGER.debug("跳过不支持的格式 %s: %s", image_format, input_path)
                    return []

                output_dir.mkdir(parents=True, exist_ok=True)
                destination = output_dir / input_path.name
                if image_format == "JPEG":
                    self._save_jpeg(img, destination)
                else:
                    self._save_png(img, destination)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            LOGGER.debug("无法优化图像文件 %s: %s", input_path, exc)
            raise ImageOptimizeError(f"无法优化图像: {input_path}") from exc

        return [OptimizedFile(path=destination, size=destination.stat().st_size)]

    def _save_jpeg(self, img: Image.Image, destination: Path) -> None:
        image_to_save = img
        if img.mode not in {"RGB", "L", "CMYK"}:
            image_to_save = img.convert("RGB")
        image_to_save.save(
            destination,
            format="JPEG",
            quality=self.config.jpeg_quality,
            optimize=True,
            progressive=True,
        )

    def _save_png(self, img: Image.Image, destination: Path) -> None:
        image_to_save = img
        if img.mode == "RGB":
            image_to_save = img.quantize(colors=self.config.png_colors, method=Image.Quantize.MEDIANCUT)
        elif img.mode != "P" and img.mode != "1":
            # RGBA 只能使用 FASTOCTREE 量化
            image_to_save = img.convert("RGBA").quantize(
                colors=self.config.png_colors, method=Image.Quantize.FASTOCTREE
            )
        image_to_save.save(destination, format="PNG", optimize=True)

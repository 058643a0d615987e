"""分析任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from image_audit.core.exceptions import InvalidConfigurationError

DEFAULT_REPORT_COLUMNS: tuple[str, ...] = (
    "content_id",
    "image_type",
    "image_field",
    "template",
    "url",
    "original_size",
    "optimized_size",
    "optimization_diff",
    "optimization_pct",
)

SUPPORTED_TABLE_SUFFIXES = {".xlsx", ".csv"}


@dataclass(slots=True)
class InputConfig:
    """输入表格的结构描述。"""

    sheet_name: Optional[str] = "path"
    location_prefix: str = "live"
    content_id_column: str = "CONTENT_ID"
    type_column: str = "contenttypename"
    template_column: str = "template"
    location_column: str = "location"


@dataclass(slots=True)
class FetchConfig:
    """下载阶段配置。"""

    base_url: str = "https://www.cancer.gov"
    concurrency: int = 10
    timeout: float = 60.0
    cache_root: Path = Path("image_cache")
    reuse_cache: bool = False
    user_agent: str = "image-audit/1.0"


@dataclass(slots=True)
class OptimizeConfig:
    """优化阶段配置。"""

    concurrency: int = 5
    timeout: float = 120.0
    output_root: Path = Path("optimized_images")
    jpeg_quality: int = 75
    png_colors: int = 256


@dataclass(slots=True)
class AnalysisConfig:
    """单次分析任务的配置集合。"""

    input_path: Path
    output_path: Path
    input: InputConfig = field(default_factory=InputConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    optimize: OptimizeConfig = field(default_factory=OptimizeConfig)
    io_workers: int = 16
    report_columns: Sequence[str] = DEFAULT_REPORT_COLUMNS

    def validate(self) -> None:
        """检查配置取值，不合法时抛出 InvalidConfigurationError。"""

        if self.fetch.concurrency <= 0:
            raise InvalidConfigurationError(f"下载并发数必须大于 0: {self.fetch.concurrency}")
        if self.optimize.concurrency <= 0:
            raise InvalidConfigurationError(f"优化并发数必须大于 0: {self.optimize.concurrency}")
        if self.fetch.timeout <= 0 or self.optimize.timeout <= 0:
            raise InvalidConfigurationError("超时时间必须大于 0")
        if self.io_workers <= 0:
            raise InvalidConfigurationError(f"线程池大小必须大于 0: {self.io_workers}")
        if not 1 <= self.optimize.jpeg_quality <= 100:
            raise InvalidConfigurationError(f"JPEG 质量必须在 1~100 之间: {self.optimize.jpeg_quality}")
        if not 2 <= self.optimize.png_colors <= 256:
            raise InvalidConfigurationError(f"PNG 调色板颜色数必须在 2~256 之间: {self.optimize.png_colors}")
        for path in (self.input_path, self.output_path):
            if path.suffix.lower() not in SUPPORTED_TABLE_SUFFIXES:
                raise InvalidConfigurationError(f"不支持的表格格式: {path.suffix or path.name}")
        if not self.report_columns:
            raise InvalidConfigurationError("报告列不能为空")

"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

UNSET_SIZE = -1


@dataclass(slots=True)
class ImageRecord:
    """单张图片的元数据与处理状态。

    由行提取器创建，下载阶段与优化阶段依次原地更新，报告阶段只读。
    """

    content_id: Any
    image_type: Any
    image_field: str
    template: Any
    source_url: str
    file_name: str
    file_extension: str
    content_hash: str
    cache_path: Optional[Path] = None
    optimized_path: Optional[Path] = None
    original_size_bytes: int = UNSET_SIZE
    optimized_size_bytes: int = UNSET_SIZE
    size_delta_bytes: int = 0
    size_delta_pct: float = 0.0
    optimize_note: Optional[str] = None

    @property
    def fetched(self) -> bool:
        return self.original_size_bytes != UNSET_SIZE

    @property
    def optimized(self) -> bool:
        return self.optimized_size_bytes != UNSET_SIZE

    def mark_fetched(self, cache_path: Path, size: int) -> None:
        """记录下载结果，每条记录只允许写入一次。"""

        if self.fetched:
            raise ValueError(f"原始大小已记录: {self.source_url}")
        self.cache_path = cache_path
        self.original_size_bytes = size

    def mark_optimized(self, optimized_path: Path, size: int) -> None:
        """记录优化结果并计算节省量。"""

        if self.optimized:
            raise ValueError(f"优化后大小已记录: {self.source_url}")
        self.optimized_path = optimized_path
        self.optimized_size_bytes = size
        self.size_delta_bytes = self.original_size_bytes - size
        # 空文件无法计算比例，保持默认值。
        if self.original_size_bytes > 0:
            self.size_delta_pct = self.size_delta_bytes / self.original_size_bytes

    def report_values(self) -> dict[str, Any]:
        """按报告列名导出字段值。"""

        return {
            "content_id": self.content_id,
            "image_type": self.image_type,
            "image_field": self.image_field,
            "template": self.template,
            "url": self.source_url,
            "file_name": self.file_name,
            "file_extension": self.file_extension,
            "content_hash": self.content_hash,
            "cache_path": str(self.cache_path) if self.cache_path else None,
            "optimized_path": str(self.optimized_path) if self.optimized_path else None,
            "original_size": self.original_size_bytes,
            "optimized_size": self.optimized_size_bytes,
            "optimization_diff": self.size_delta_bytes,
            "optimization_pct": self.size_delta_pct,
            "note": self.optimize_note,
        }


@dataclass(slots=True)
class OptimizedFile:
    """优化器产出的单个文件。"""

    path: Path
    size: int


@dataclass(slots=True)
class AnalysisResult:
    """一次分析任务的汇总结果。"""

    records: list[ImageRecord]
    output_path: Path
    soft_failures: list[ImageRecord] = field(default_factory=list)

    @property
    def optimized_count(self) -> int:
        return sum(1 for record in self.records if record.optimized)

    @property
    def total_original_bytes(self) -> int:
        return sum(r.original_size_bytes for r in self.records if r.optimized)

    @property
    def total_saved_bytes(self) -> int:
        return sum(r.size_delta_bytes for r in self.records if r.optimized)

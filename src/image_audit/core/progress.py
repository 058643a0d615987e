"""进度更新的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(slots=True)
class ProgressUpdate:
    """分析过程中各阶段的进度信息。"""

    stage: str
    total: int
    completed: int
    message: Optional[str] = None


ProgressCallback = Optional[Callable[[ProgressUpdate], None]]

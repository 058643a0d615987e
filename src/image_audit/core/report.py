"""报告生成工具。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Sequence

from image_audit.core.models import ImageRecord
from image_audit.core.tables import write_table

LOGGER = logging.getLogger(__name__)


def project_record(record: ImageRecord, columns: Sequence[str]) -> dict[str, Any]:
    """把记录投影到报告列上，未知列取 None（不写入单元格）。"""

    values = record.report_values()
    return {column: values.get(column) for column in columns}


def write_report(records: Iterable[ImageRecord], output_path: Path, columns: Sequence[str]) -> Path:
    """将分析结果写入输出表格，每条记录一行。"""

    rows = [project_record(record, columns) for record in records]
    write_table(output_path, rows, columns)
    LOGGER.info("报告已写入 %s（%d 行）", output_path, len(rows))
    return output_path

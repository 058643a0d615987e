"""表格读写：支持 xlsx（openpyxl）与 csv。"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from image_audit.core.exceptions import InputError, InvalidConfigurationError, ReportWriteError

LOGGER = logging.getLogger(__name__)

Row = dict[str, Any]

OUTPUT_SHEET_NAME = "Sheet1"


def read_table(path: Path, sheet_name: Optional[str] = None) -> list[Row]:
    """读取表格，返回以表头为键的行列表；完全空白的行会被跳过。"""

    suffix = path.suffix.lower()
    if suffix == ".xlsx":
        return _read_xlsx(path, sheet_name)
    if suffix == ".csv":
        return _read_csv(path)
    raise InvalidConfigurationError(f"不支持的表格格式: {suffix or path.name}")


def write_table(path: Path, rows: Iterable[Mapping[str, Any]], columns: Sequence[str]) -> Path:
    """按给定列顺序写出表格，首行为表头。"""

    suffix = path.suffix.lower()
    if suffix not in {".xlsx", ".csv"}:
        raise InvalidConfigurationError(f"不支持的表格格式: {suffix or path.name}")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if suffix == ".xlsx":
            _write_xlsx(path, rows, columns)
        else:
            _write_csv(path, rows, columns)
    except (OSError, ValueError) as exc:
        raise ReportWriteError(f"写入报告失败: {path} ({exc})") from exc
    return path


def _read_xlsx(path: Path, sheet_name: Optional[str]) -> list[Row]:
    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as exc:
        raise InputError(f"无法读取输入表格: {path} ({exc})") from exc

    try:
        if sheet_name is None:
            worksheet = workbook.worksheets[0]
        elif sheet_name in workbook.sheetnames:
            worksheet = workbook[sheet_name]
        else:
            raise InputError(f"输入表格缺少工作表 {sheet_name!r}: {path}")

        rows = worksheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        columns = [_header_name(cell) for cell in header]
        return [_to_row(columns, values) for values in rows if not _is_blank(values)]
    finally:
        workbook.close()


def _read_csv(path: Path) -> list[Row]:
    try:
        with path.open("r", newline="", encoding="utf-8-sig") as handle:
            reader = csv.reader(handle)
            header = next(reader, None)
            if header is None:
                return []
            columns = [_header_name(cell) for cell in header]
            parsed = []
            for values in reader:
                cleaned = [value if value != "" else None for value in values]
                if _is_blank(cleaned):
                    continue
                parsed.append(_to_row(columns, cleaned))
            return parsed
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise InputError(f"无法读取输入表格: {path} ({exc})") from exc


def _write_xlsx(path: Path, rows: Iterable[Mapping[str, Any]], columns: Sequence[str]) -> None:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = OUTPUT_SHEET_NAME
    worksheet.append(list(columns))

    for row_idx, row in enumerate(rows, start=2):
        for col_idx, column in enumerate(columns, start=1):
            value = row.get(column)
            # 空值不写入单元格
            if value is None:
                continue
            worksheet.cell(row=row_idx, column=col_idx, value=value)

    workbook.save(path)


def _write_csv(path: Path, rows: Iterable[Mapping[str, Any]], columns: Sequence[str]) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(columns)
        for row in rows:
            writer.writerow(["" if row.get(column) is None else row.get(column) for column in columns])


def _header_name(cell: Any) -> Optional[str]:
    if cell is None:
        return None
    name = str(cell).strip()
    return name or None


def _to_row(columns: Sequence[Optional[str]], values: Sequence[Any]) -> Row:
    return {name: value for name, value in zip(columns, values) if name is not None}


def _is_blank(values: Sequence[Any]) -> bool:
    return all(value is None or (isinstance(value, str) and not value.strip()) for value in values)

"""行提取：把输入表格的原始行转换为 ImageRecord。"""

from __future__ import annotations

import hashlib
import logging
from pathlib import PurePosixPath
from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit

from image_audit.core.config import AnalysisConfig, InputConfig
from image_audit.core.exceptions import InputError
from image_audit.core.models import ImageRecord
from image_audit.core.tables import read_table

LOGGER = logging.getLogger(__name__)

UNKNOWN_FIELD = "UNK"

TEMPLATE_FIELDS = {
    "gloBnUtilityImage": "Utility",
    "gloBnImage": "Article Image",
    "gloBnImage5_Panorama": "Panorama",
    "gloBnImage3_Enlarged": "Enlarged",
    "gloBnImage4_WideFeature": "Wide Feature",
    "gloBnImage2_Thumbnail": "Thumbnail",
}


def map_template_to_field(template: Any) -> str:
    """将模板标识映射为图片类别，未知输入一律返回 UNK。"""

    if not isinstance(template, str):
        return UNKNOWN_FIELD
    field_name = TEMPLATE_FIELDS.get(template)
    if field_name is None:
        LOGGER.debug("未知模板 %r，归类为 %s", template, UNKNOWN_FIELD)
        return UNKNOWN_FIELD
    return field_name


def normalize_location(location: Any, prefix: str) -> str:
    """去掉发布路径前缀，得到站点内的 URL 路径。"""

    value = str(location).strip()
    if prefix and value.startswith(prefix):
        value = value[len(prefix):]
    return value


def build_source_url(path: str, base_url: str) -> str:
    """拼接为绝对 URL；已是绝对地址时原样返回。"""

    if urlsplit(path).scheme in {"http", "https"}:
        return path
    if not path.startswith("/"):
        path = "/" + path
    return base_url.rstrip("/") + path


def compute_content_hash(source_url: str) -> str:
    """URL 的 md5 摘要，用作缓存分区与去重键。"""

    return hashlib.md5(source_url.encode("utf-8")).hexdigest()


def extract_records(
    rows: Iterable[Mapping[str, Any]],
    config: InputConfig,
    base_url: str,
) -> list[ImageRecord]:
    """逐行构造 ImageRecord，保持输入顺序。"""

    records: list[ImageRecord] = []
    for index, row in enumerate(rows, start=1):
        location = row.get(config.location_column)
        if location is None or not str(location).strip():
            raise InputError(f"第 {index} 条数据缺少 {config.location_column} 列")

        source_url = build_source_url(normalize_location(location, config.location_prefix), base_url)
        url_path = PurePosixPath(urlsplit(source_url).path)
        template = row.get(config.template_column)

        records.append(
            ImageRecord(
                content_id=row.get(config.content_id_column),
                image_type=row.get(config.type_column),
                image_field=map_template_to_field(template),
                template=template,
                source_url=source_url,
                file_name=url_path.name or "image",
                file_extension=url_path.suffix,
                content_hash=compute_content_hash(source_url),
            )
        )
    return records


def load_records(config: AnalysisConfig) -> list[ImageRecord]:
    """读取输入表格并提取全部图片记录。"""

    rows = read_table(config.input_path, config.input.sheet_name)
    LOGGER.info("读取到 %d 行输入数据", len(rows))
    return extract_records(rows, config.input, config.fetch.base_url)

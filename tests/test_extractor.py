"""行提取：模板映射、URL 规范化与输入表格读取。"""

from __future__ import annotations

from pathlib import Path

import pytest
from openpyxl import Workbook

from image_audit.core.config import AnalysisConfig, FetchConfig, InputConfig
from image_audit.core.exceptions import InputError
from image_audit.core.extractor import (
    compute_content_hash,
    extract_records,
    load_records,
    map_template_to_field,
    normalize_location,
)
from image_audit.core.models import UNSET_SIZE

HEADER = ["CONTENT_ID", "contenttypename", "template", "location"]


def write_input(path: Path, rows: list[list[object]], sheet: str = "path") -> Path:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet
    worksheet.append(HEADER)
    for row in rows:
        worksheet.append(row)
    workbook.save(path)
    return path


@pytest.mark.parametrize(
    ("template", "expected"),
    [
        ("gloBnUtilityImage", "Utility"),
        ("gloBnImage", "Article Image"),
        ("gloBnImage5_Panorama", "Panorama"),
        ("gloBnImage3_Enlarged", "Enlarged"),
        ("gloBnImage4_WideFeature", "Wide Feature"),
        ("gloBnImage2_Thumbnail", "Thumbnail"),
        ("foo", "UNK"),
        ("", "UNK"),
        (" gloBnImage", "UNK"),
        (None, "UNK"),
        (42, "UNK"),
        (["gloBnImage"], "UNK"),
    ],
)
def test_template_mapping_is_total(template: object, expected: str) -> None:
    assert map_template_to_field(template) == expected


def test_normalize_location_strips_only_leading_prefix() -> None:
    assert normalize_location("live/images/a.jpg", "live") == "/images/a.jpg"
    assert normalize_location("/images/live.jpg", "live") == "/images/live.jpg"
    assert normalize_location("  live/x.png ", "live") == "/x.png"


def test_content_hash_is_deterministic() -> None:
    url = "https://www.cancer.gov/images/a.jpg"
    assert compute_content_hash(url) == compute_content_hash(url)
    assert compute_content_hash(url) != compute_content_hash(url + "?v=2")
    assert len(compute_content_hash(url)) == 32


def test_extract_records_builds_normalized_records() -> None:
    rows = [
        {"CONTENT_ID": 101, "contenttypename": "cgvImage", "template": "gloBnImage", "location": "live/images/cat.JPG"},
        {"CONTENT_ID": 102, "contenttypename": "cgvImage", "template": "foo", "location": "live/images/dir/dog.png"},
    ]

    records = extract_records(rows, InputConfig(), "https://www.cancer.gov/")

    assert [r.content_id for r in records] == [101, 102]
    first = records[0]
    assert first.source_url == "https://www.cancer.gov/images/cat.JPG"
    assert first.file_name == "cat.JPG"
    assert first.file_extension == ".JPG"
    assert first.image_field == "Article Image"
    assert first.content_hash == compute_content_hash(first.source_url)
    assert first.original_size_bytes == UNSET_SIZE
    assert first.optimized_size_bytes == UNSET_SIZE
    assert first.size_delta_bytes == 0
    assert first.size_delta_pct == 0
    assert first.cache_path is None

    assert records[1].image_field == "UNK"
    assert records[1].template == "foo"


def test_extract_records_keeps_absolute_locations() -> None:
    rows = [{"location": "https://cdn.example.org/a.gif"}]

    records = extract_records(rows, InputConfig(), "https://www.cancer.gov")

    assert records[0].source_url == "https://cdn.example.org/a.gif"
    assert records[0].content_id is None
    assert records[0].image_field == "UNK"


def test_row_without_location_is_fatal() -> None:
    rows = [{"CONTENT_ID": 1, "location": "live/a.jpg"}, {"CONTENT_ID": 2, "location": "  "}]

    with pytest.raises(InputError):
        extract_records(rows, InputConfig(), "https://www.cancer.gov")


def test_load_records_reads_path_sheet(tmp_path: Path) -> None:
    source = write_input(
        tmp_path / "input.xlsx",
        [
            [1, "cgvImage", "gloBnUtilityImage", "live/images/a.jpg"],
            [None, None, None, None],
            [2, "cgvImage", "gloBnImage2_Thumbnail", "live/images/b.png"],
        ],
    )
    config = AnalysisConfig(input_path=source, output_path=tmp_path / "out.xlsx", fetch=FetchConfig(base_url="http://host"))

    records = load_records(config)

    assert [r.source_url for r in records] == ["http://host/images/a.jpg", "http://host/images/b.png"]
    assert [r.image_field for r in records] == ["Utility", "Thumbnail"]


def test_load_records_missing_sheet_is_fatal(tmp_path: Path) -> None:
    source = write_input(tmp_path / "input.xlsx", [[1, "t", "gloBnImage", "live/a.jpg"]], sheet="other")
    config = AnalysisConfig(input_path=source, output_path=tmp_path / "out.xlsx")

    with pytest.raises(InputError):
        load_records(config)


def test_load_records_unparseable_file_is_fatal(tmp_path: Path) -> None:
    source = tmp_path / "broken.xlsx"
    source.write_text("definitely not a workbook")
    config = AnalysisConfig(input_path=source, output_path=tmp_path / "out.xlsx")

    with pytest.raises(InputError):
        load_records(config)


def test_load_records_from_csv(tmp_path: Path) -> None:
    source = tmp_path / "input.csv"
    source.write_text(
        "CONTENT_ID,contenttypename,template,location\n"
        "7,cgvImage,gloBnImage5_Panorama,live/p/wide.jpg\n"
        ",,,\n",
        encoding="utf-8",
    )
    config = AnalysisConfig(input_path=source, output_path=tmp_path / "out.csv")

    records = load_records(config)

    assert len(records) == 1
    assert records[0].content_id == "7"
    assert records[0].image_field == "Panorama"
    assert records[0].source_url == "https://www.cancer.gov/p/wide.jpg"

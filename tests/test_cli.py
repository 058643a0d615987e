"""命令行：退出码、错误输出与参数传递。"""

from __future__ import annotations

from pathlib import Path

from openpyxl import Workbook
from typer.testing import CliRunner

from image_audit.cli import main as cli_main
from image_audit.core.models import OptimizedFile
from image_audit.processing.pipeline import analyze_images

runner = CliRunner()


class StaticFetcher:
    async def fetch(self, url: str) -> bytes:
        return b"s" * 200


class HalvingOptimizer:
    def optimize(self, input_path: Path, output_dir: Path) -> list[OptimizedFile]:
        output_dir.mkdir(parents=True, exist_ok=True)
        destination = output_dir / input_path.name
        destination.write_bytes(input_path.read_bytes()[:100])
        return [OptimizedFile(path=destination, size=100)]


def write_input(path: Path) -> Path:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "path"
    worksheet.append(["CONTENT_ID", "contenttypename", "template", "location"])
    worksheet.append([1, "cgvImage", "gloBnImage", "live/images/a.jpg"])
    workbook.save(path)
    return path


def test_check_images_success(tmp_path: Path, monkeypatch) -> None:
    captured = {}

    def fake_analyze(config, progress_callback=None):
        captured["config"] = config
        return analyze_images(
            config, progress_callback=progress_callback, fetcher=StaticFetcher(), optimizer=HalvingOptimizer()
        )

    monkeypatch.setattr(cli_main, "analyze_images", fake_analyze)
    source = write_input(tmp_path / "input.xlsx")
    output = tmp_path / "report.xlsx"

    result = runner.invoke(
        cli_main.app,
        [
            "check-images",
            str(source),
            str(output),
            "--cache-dir",
            str(tmp_path / "cache"),
            "--optimized-dir",
            str(tmp_path / "optimized"),
            "--fetch-concurrency",
            "4",
            "--optimize-concurrency",
            "2",
        ],
    )

    assert result.exit_code == 0, result.output
    assert output.exists()
    config = captured["config"]
    assert config.fetch.concurrency == 4
    assert config.optimize.concurrency == 2
    assert config.input.sheet_name == "path"


def test_check_images_missing_input_exits_non_zero(tmp_path: Path) -> None:
    output = tmp_path / "report.xlsx"

    result = runner.invoke(
        cli_main.app,
        ["check-images", str(tmp_path / "missing.xlsx"), str(output), "--cache-dir", str(tmp_path / "cache")],
    )

    assert result.exit_code == 1
    assert "missing.xlsx" in result.output
    assert not output.exists()


def test_version_option() -> None:
    result = runner.invoke(cli_main.app, ["--version"])

    assert result.exit_code == 0
    assert result.output.strip()

"""命令行入口。"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from image_audit.core.config import AnalysisConfig, FetchConfig, OptimizeConfig
from image_audit.core.exceptions import ImageAuditError
from image_audit.core.progress import ProgressUpdate
from image_audit.processing.pipeline import analyze_images
from image_audit.utils.logging import setup_logging

app = typer.Typer(help="批量图片优化收益分析工具。")

err_console = Console(stderr=True)

STAGE_LABELS = {
    "fetch": "下载图片",
    "optimize": "优化图片",
}


def _package_version() -> str:
    try:
        return version("image-audit")
    except PackageNotFoundError:
        return "0.0.0"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(_package_version())
        raise typer.Exit()


@app.callback()
def main(
    show_version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="显示版本号并退出"
    ),
) -> None:
    """处理包含图片路径的表格，分析图片优化可以节省多少空间。"""


def _build_progress_callback(progress: Progress):
    task_ids: dict[str, int] = {}

    def callback(update: ProgressUpdate) -> None:
        if update.total == 0:
            return
        task_id = task_ids.get(update.stage)
        if task_id is None:
            task_id = progress.add_task(STAGE_LABELS.get(update.stage, update.stage), total=update.total)
            task_ids[update.stage] = task_id
        progress.update(task_id, completed=update.completed)

    return callback


@app.command("check-images")
def check_images(  # noqa: PLR0913
    input_file: Path = typer.Argument(..., help="包含图片路径的输入表格 (.xlsx/.csv)"),
    output_file: Path = typer.Argument(..., help="分析结果输出表格 (.xlsx/.csv)"),
    base_url: str = typer.Option("https://www.cancer.gov", "--base-url", help="图片所在站点的根地址"),
    sheet_name: Optional[str] = typer.Option("path", "--sheet", help="输入工作表名称"),
    fetch_concurrency: int = typer.Option(10, "--fetch-concurrency", help="同时进行的下载数量"),
    optimize_concurrency: int = typer.Option(5, "--optimize-concurrency", help="同时进行的优化数量"),
    timeout: float = typer.Option(60.0, "--timeout", help="单次下载超时（秒）"),
    optimize_timeout: float = typer.Option(120.0, "--optimize-timeout", help="单次优化超时（秒）"),
    cache_dir: Path = typer.Option(Path("image_cache"), "--cache-dir", help="原始图片缓存目录"),
    optimized_dir: Path = typer.Option(Path("optimized_images"), "--optimized-dir", help="优化结果目录"),
    reuse_cache: bool = typer.Option(False, "--reuse-cache/--no-reuse-cache", help="复用已缓存的原始图片"),
    io_workers: int = typer.Option(16, "--io-workers", help="文件与图像处理线程数"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """下载表格中列出的图片并统计优化前后的大小。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)

    config = AnalysisConfig(
        input_path=input_file.expanduser(),
        output_path=output_file.expanduser(),
        fetch=FetchConfig(
            base_url=base_url,
            concurrency=fetch_concurrency,
            timeout=timeout,
            cache_root=cache_dir.expanduser().resolve(),
            reuse_cache=reuse_cache,
        ),
        optimize=OptimizeConfig(
            concurrency=optimize_concurrency,
            timeout=optimize_timeout,
            output_root=optimized_dir.expanduser().resolve(),
        ),
        io_workers=io_workers,
    )
    config.input.sheet_name = sheet_name

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=err_console,
    )

    try:
        with progress:
            result = analyze_images(config, progress_callback=_build_progress_callback(progress))
    except ImageAuditError as exc:
        err_console.print(str(exc), style="red", markup=False, highlight=False, soft_wrap=True)
        err_console.print("发生错误，退出。", style="red")
        raise typer.Exit(code=1) from exc

    typer.echo(
        f"分析完成：共 {len(result.records)} 条记录，优化 {result.optimized_count} 条，"
        f"未能优化 {len(result.soft_failures)} 条。"
    )
    if result.total_original_bytes > 0:
        ratio = result.total_saved_bytes / result.total_original_bytes
        typer.echo(f"可节省 {result.total_saved_bytes} 字节（{ratio:.1%}）。")
    typer.echo(f"报告文件：{result.output_path}")


if __name__ == "__main__":
    app()

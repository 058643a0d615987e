"""项目内使用的自定义异常定义。"""

from __future__ import annotations


class ImageAuditError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ImageAuditError):
    """配置不合法时抛出。"""


class InputError(ImageAuditError):
    """输入表格无法解析时抛出，整个任务随即终止。"""


class FetchError(ImageAuditError):
    """下载阶段的网络或文件系统错误。"""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"下载失败 {url}: {message}")
        self.url = url


class ImageOptimizeError(ImageAuditError):
    """单张图片无法优化（仅影响该记录）。"""


class ReportWriteError(ImageAuditError):
    """输出报告写入失败。"""

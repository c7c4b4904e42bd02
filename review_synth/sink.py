"""Report persistence collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import click
from loguru import logger

from review_synth.models import Report
from review_synth.output import render

_EXTENSIONS = {"json": "json", "markdown": "md", "human": "txt"}


class ReportSink(Protocol):
    """Somewhere a finished report can be written."""

    def write(self, report: Report) -> str:
        """Persist the report and return its location."""


class SessionDirectorySink:
    """Write each report as a new file in a session directory.

    Reports are append-only: an existing file is never overwritten, a numeric
    suffix is added instead.
    """

    def __init__(self, directory: Path, *, output_format: str = "markdown") -> None:
        if output_format not in _EXTENSIONS:
            choices = ", ".join(sorted(_EXTENSIONS))
            raise ValueError(f"output format must be one of: {choices}")
        self.directory = directory
        self.output_format = output_format

    def write(self, report: Report) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        content = render(report, self.output_format)
        if self.output_format == "human":
            content = click.unstyle(content)
        stamp = report.metadata.completed_at.replace(":", "").replace("-", "")
        stem = f"{report.metadata.command}-{stamp}-{report.metadata.scope}"
        extension = _EXTENSIONS[self.output_format]

        attempt = 0
        while True:
            suffix = f"-{attempt}" if attempt else ""
            path = self.directory / f"{stem}{suffix}.{extension}"
            try:
                with path.open("x", encoding="utf-8") as file_obj:
                    file_obj.write(content)
            except FileExistsError:
                attempt += 1
                continue
            logger.info("report written to {}", path)
            return str(path)

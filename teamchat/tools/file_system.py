from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from pydantic import BaseModel, Field

from teamchat.tools.base import Tool

logger = logging.getLogger(__name__)


class PathArguments(BaseModel):
    path: str = Field(min_length=1, description="path inside the working directory")


class WriteFileArguments(BaseModel):
    path: str = Field(min_length=1, description="path to the file inside the working directory")
    content: str = Field(min_length=1, description="content to write to the file")


class FileSystemTool(Tool):
    """Tool whose behaviour is a bound method of ``FileSystemTools``."""

    def __init__(
        self,
        name: str,
        description: str,
        args_schema: type[BaseModel],
        handler: Callable[[BaseModel], str],
    ) -> None:
        super().__init__(name=name, description=description, args_schema=args_schema)
        self._handler = handler

    def run(self, arguments: BaseModel) -> str:
        return self._handler(arguments)


class FileSystemTools:
    """File operations confined to a single working directory."""

    def __init__(self, workdir: str | Path) -> None:
        if not str(workdir).strip():
            raise ValueError("workdir must not be empty")
        self.workdir = Path(workdir).resolve()

    def tools(self) -> List[Tool]:
        return [
            FileSystemTool(
                "list_directory_contents",
                "List the files and directories in the given path inside the working directory",
                PathArguments,
                lambda args: self.list_directory_contents(args.path),
            ),
            FileSystemTool(
                "list_directory_contents_recursively",
                "List the files and directories in the given path inside the working directory recursively",
                PathArguments,
                lambda args: self.list_directory_contents_recursively(args.path),
            ),
            FileSystemTool(
                "write_to_file",
                "Write content to a file inside the working directory",
                WriteFileArguments,
                lambda args: self.write_to_file(args.path, args.content),
            ),
            FileSystemTool(
                "get_file_content",
                "Get the content of a file inside the working directory",
                PathArguments,
                lambda args: self.get_file_content(args.path),
            ),
            FileSystemTool(
                "delete_file_or_directory",
                "Delete a file or directory inside the working directory",
                PathArguments,
                lambda args: self.delete_file_or_directory(args.path),
            ),
            FileSystemTool(
                "create_directory",
                "Create a directory inside the working directory",
                PathArguments,
                lambda args: self.create_directory(args.path),
            ),
        ]

    def list_directory_contents(self, path: str) -> str:
        target = self._resolve(path)
        if target is None:
            return self._escaped("list_directory_contents", path)
        if target.exists() and not target.is_dir():
            return self._invalid("list_directory_contents", f"'{path}' is not a directory")
        target.mkdir(parents=True, exist_ok=True)
        return self._format_listing(target.iterdir())

    def list_directory_contents_recursively(self, path: str) -> str:
        target = self._resolve(path)
        if target is None:
            return self._escaped("list_directory_contents_recursively", path)
        if target.exists() and not target.is_dir():
            return self._invalid("list_directory_contents_recursively", f"'{path}' is not a directory")
        target.mkdir(parents=True, exist_ok=True)
        return self._format_listing(target.rglob("*"))

    def write_to_file(self, path: str, content: str) -> str:
        target = self._resolve(path)
        if target is None:
            return self._escaped("write_to_file", path)
        if target.is_dir():
            return self._invalid("write_to_file", f"'{path}' is a directory")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        except OSError as exc:
            return self._invalid("write_to_file", str(exc))
        logger.info("Wrote %d chars to %s", len(content), target)
        return "File written successfully"

    def get_file_content(self, path: str) -> str:
        target = self._resolve(path)
        if target is None:
            return self._escaped("get_file_content", path)
        if not target.is_file():
            return "File not found"
        try:
            return target.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return self._invalid("get_file_content", f"'{path}' is not a UTF-8 text file")

    def delete_file_or_directory(self, path: str) -> str:
        target = self._resolve(path)
        if target is None or target == self.workdir:
            return self._escaped("delete_file_or_directory", path)
        if target.is_file():
            target.unlink()
            return "File deleted successfully"
        if target.is_dir():
            shutil.rmtree(target)
            return "Directory deleted successfully"
        return "File or directory not found"

    def create_directory(self, path: str) -> str:
        target = self._resolve(path)
        if target is None:
            return self._escaped("create_directory", path)
        target.mkdir(parents=True, exist_ok=True)
        return "Directory created successfully"

    def _resolve(self, path: str) -> Optional[Path]:
        target = (self.workdir / path).resolve()
        if target != self.workdir and self.workdir not in target.parents:
            return None
        return target

    def _format_listing(self, entries: Iterable[Path]) -> str:
        files: List[str] = []
        directories: List[str] = []
        for entry in entries:
            relative = entry.relative_to(self.workdir).as_posix()
            (directories if entry.is_dir() else files).append(relative)
        lines = ["Files:", *sorted(files), "Directories:", *sorted(directories)]
        return "\n".join(lines) + "\n"

    @staticmethod
    def _escaped(tool: str, path: str) -> str:
        return FileSystemTools._invalid(tool, f"path '{path}' is outside the working directory")

    @staticmethod
    def _invalid(tool: str, reason: str) -> str:
        return f"Invalid argument for {tool}: {reason}"

"""File operations scoped to a project root: read, write, list."""

import os
from pathlib import Path
from typing import List, Optional, Tuple


class FileOperationError(Exception):
    pass


class FileOps:
    SKIP_DIRS = {
        ".git", ".svn", ".hg", ".venv", "venv", "env",
        "node_modules", "__pycache__", ".mypy_cache",
        ".pytest_cache", ".tox", "dist", "build",
        ".egg-info", ".next", ".cache", "target",
    }
    MAX_READ_LINES = 2000

    def __init__(self, project_root: str):
        self.project_root = Path(project_root).resolve()

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        if not p.is_absolute():
            p = self.project_root / p
        p = p.resolve()
        try:
            p.relative_to(self.project_root)
        except ValueError:
            raise FileOperationError(
                f"Access denied: '{path}' is outside project root ({self.project_root})"
            )
        return p

    def read_file(self, path: str, start_line: Optional[int] = None,
                  end_line: Optional[int] = None) -> str:
        fp = self._resolve(path)
        if not fp.exists():
            raise FileOperationError(f"File not found: {path}")
        if not fp.is_file():
            raise FileOperationError(f"Not a file: {path}")
        try:
            content = fp.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            raise FileOperationError(f"Cannot read binary file: {path}")

        lines = content.splitlines()
        total = len(lines)
        s = max((start_line or 1) - 1, 0)
        e = min(end_line or total, total, s + self.MAX_READ_LINES)
        numbered = [f"{s + i + 1:4d} | {l}" for i, l in enumerate(lines[s:e])]
        rel = fp.relative_to(self.project_root)
        return f"Contents of {rel} ({total} lines):\n" + "\n".join(numbered)

    def write_file(self, path: str, content: str) -> str:
        fp = self._resolve(path)
        existed = fp.exists()
        if existed and not fp.is_file():
            raise FileOperationError(f"Not a file: {path}")
        fp.parent.mkdir(parents=True, exist_ok=True)
        fp.write_text(content, encoding="utf-8")
        rel = str(fp.relative_to(self.project_root))
        verb = "File updated" if existed else "File created"
        return f"{verb}: wrote to {rel} ({len(content.splitlines())} lines)"

    def list_directory(self, path: str = ".", max_depth: int = 3) -> str:
        fp = self._resolve(path)
        if not fp.exists():
            raise FileOperationError(f"Not found: {path}")
        if not fp.is_dir():
            raise FileOperationError(f"Not a directory: {path}")

        rel = fp.relative_to(self.project_root)
        lines: List[str] = []
        total_files, total_dirs = self._tree(fp, lines, "", 0, max(1, int(max_depth)))
        header = f"{rel}/ ({total_files} files, {total_dirs} dirs)"
        return "\n".join([header] + lines)

    def _tree(self, d: Path, lines: list, prefix: str, depth: int, max_depth: int) -> Tuple[int, int]:
        """Render tree lines, return (total_files, total_dirs) for the entire subtree."""
        if depth >= max_depth:
            f_count = d_count = 0
            for _, dirs, files in os.walk(d):
                dirs[:] = [dd for dd in dirs if dd not in self.SKIP_DIRS and not dd.startswith(".")]
                d_count += len(dirs)
                f_count += len(files)
            return f_count, d_count
        try:
            entries = sorted(d.iterdir(), key=lambda e: (not e.is_dir(), e.name.lower()))
        except PermissionError:
            return 0, 0
        entries = [e for e in entries if not e.name.startswith(".") and e.name not in self.SKIP_DIRS]
        total_files = total_dirs = 0
        for i, entry in enumerate(entries):
            last = i == len(entries) - 1
            conn = "└── " if last else "├── "
            ext_pre = "    " if last else "│   "
            if entry.is_dir():
                total_dirs += 1
                lines.append(f"{prefix}{conn}{entry.name}/")
                sub_f, sub_d = self._tree(entry, lines, prefix + ext_pre, depth + 1, max_depth)
                total_files += sub_f
                total_dirs += sub_d
            else:
                total_files += 1
                lines.append(f"{prefix}{conn}{entry.name}")
        return total_files, total_dirs

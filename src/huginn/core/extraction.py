"""
Markdown Extraction - turns documentation files into code block inputs.

Fenced code blocks become ``CodeBlockInput`` records: the nearest heading
above a fence is its title, the paragraph right before it its description,
and front matter ``tags``/``categories``/``constitutional`` apply to every
block in the file. This is a one-shot scan feeding a full rebuild.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .error_handling import IndexingError, handle_error, log_error, log_info, log_warning
from .indexer import CodeBlockInput
from .settings import get_project_root

_FENCE_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})\s*(?P<info>[^`]*)$")
_HEADING_RE = re.compile(r"^ {0,3}#{1,6}\s+(?P<text>.+?)\s*#*\s*$")


class MarkdownCodeExtractor:
    """Scans markdown documents and extracts their fenced code blocks."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        project_root: Optional[Path] = None,
        verbose: bool = False,
    ):
        config = config or {}
        self.docs_paths = list(config.get("docs_paths", ["docs/"]))
        self.extensions = [ext.lower() for ext in config.get("file_extensions", [".md", ".markdown"])]
        self.encoding = config.get("encoding", "utf-8")
        self.max_file_size = int(config.get("max_file_size", 10 * 1024 * 1024))
        self.project_root = Path(project_root) if project_root else get_project_root()
        self.verbose = verbose

    def _resolve(self, path: Path) -> Path:
        if not path.is_absolute():
            path = self.project_root / path
        try:
            return path.resolve()
        except (OSError, RuntimeError) as e:
            raise IndexingError(f"Cannot resolve path '{path}': {e}") from e

    def scan_documents(self, docs_paths: Optional[List[str]] = None) -> List[Path]:
        """Markdown files under ``docs_paths``, sorted."""
        if docs_paths is None:
            docs_paths = self.docs_paths

        found_files = set()
        for docs_path in docs_paths:
            try:
                path = self._resolve(Path(docs_path))
            except IndexingError as e:
                handle_error(e, "Path resolution")
                continue

            try:
                if not path.exists():
                    log_warning(f"Path does not exist: {path}")
                    continue

                if path.is_file():
                    if path.suffix.lower() in self.extensions:
                        found_files.add(path)
                elif path.is_dir():
                    for ext in self.extensions:
                        for file_path in path.rglob(f"*{ext}"):
                            if file_path.is_file():
                                found_files.add(file_path)
            except (OSError, PermissionError) as e:
                log_warning(f"Cannot access path {path}: {e}")
                continue

        return sorted(found_files)

    def _relative_path(self, file_path: Path) -> str:
        try:
            return file_path.relative_to(self.project_root.resolve()).as_posix()
        except ValueError:
            return file_path.as_posix()

    def _read(self, file_path: Path) -> Optional[str]:
        try:
            size = file_path.stat().st_size
        except (OSError, PermissionError) as e:
            log_error(f"Error accessing {file_path}: {e}")
            return None

        if size > self.max_file_size:
            log_warning(f"Skipping large file: {file_path} ({size / 1024 / 1024:.1f}MB)")
            return None

        # Try multiple encodings if the default fails
        for encoding in dict.fromkeys([self.encoding, "utf-8", "latin1"]):
            try:
                return file_path.read_text(encoding=encoding)
            except UnicodeDecodeError:
                continue
            except (OSError, PermissionError) as e:
                log_error(f"Error reading {file_path}: {e}")
                return None

        log_error(f"Could not decode file {file_path} with any encoding")
        return None

    def extract_file(self, file_path: Path) -> List[CodeBlockInput]:
        content = self._read(file_path)
        if content is None:
            return []
        return extract_code_blocks(content, self._relative_path(file_path))

    def extract(self, docs_paths: Optional[List[str]] = None) -> List[CodeBlockInput]:
        """Code blocks from every markdown file under ``docs_paths``."""
        files = self.scan_documents(docs_paths)
        if self.verbose:
            log_info(f"Found {len(files)} markdown files", "📄")

        blocks: List[CodeBlockInput] = []
        for file_path in files:
            blocks.extend(self.extract_file(file_path))

        if self.verbose:
            log_info(f"Extracted {len(blocks)} code blocks", "🧩", files=len(files))
        return blocks


def extract_front_matter(content: str) -> Dict[str, Any]:
    """YAML front matter of a document, or an empty dict."""
    if not content.startswith("---\n"):
        return {}

    end_delimiter = content.find("\n---\n", 4)
    if end_delimiter == -1:
        return {}
    try:
        front_matter = yaml.safe_load(content[4:end_delimiter]) or {}
    except yaml.YAMLError as e:
        log_warning(f"Ignoring invalid front matter: {e}")
        return {}
    return front_matter if isinstance(front_matter, dict) else {}


def _body_start(content: str) -> int:
    """Line number (0-based) where the document body starts."""
    if content.startswith("---\n"):
        end_delimiter = content.find("\n---\n", 4)
        if end_delimiter != -1:
            return content[: end_delimiter + 5].count("\n")
    return 0


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(item) for item in value]


def extract_code_blocks(content: str, source_path: str = "") -> List[CodeBlockInput]:
    """Fenced code blocks of one markdown document, in document order."""
    front_matter = extract_front_matter(content)
    tags = tuple(_as_list(front_matter.get("tags")))
    categories = _as_list(front_matter.get("categories"))
    constitutional = bool(front_matter.get("constitutional", False))
    prefix = source_path or "document"

    lines = content.split("\n")
    blocks: List[CodeBlockInput] = []
    heading: Optional[str] = None
    paragraph: List[str] = []
    paragraph_closed = False
    i = _body_start(content)

    while i < len(lines):
        line = lines[i]
        fence = _FENCE_RE.match(line)

        if fence is None:
            heading_match = _HEADING_RE.match(line)
            if heading_match:
                heading = heading_match.group("text")
                paragraph = []
            elif line.strip():
                if paragraph_closed:
                    paragraph = []
                    paragraph_closed = False
                paragraph.append(line.strip())
            else:
                paragraph_closed = True
            i += 1
            continue

        marker = fence.group("fence")
        info = fence.group("info").strip()
        language = info.split()[0] if info else "text"
        start_line = i + 1

        body: List[str] = []
        i += 1
        # An unclosed fence runs to the end of the document
        while i < len(lines):
            closing = lines[i].strip()
            if closing.startswith(marker[0] * len(marker)) and not closing.strip(marker[0]):
                break
            body.append(lines[i])
            i += 1
        i += 1

        blocks.append(
            CodeBlockInput(
                id=f"{prefix}#{len(blocks) + 1}",
                code="\n".join(body),
                language=language,
                title=heading or str(front_matter.get("title") or ""),
                description=" ".join(paragraph),
                tags=tags,
                categories=tuple(categories) if categories else None,
                constitutional=constitutional,
                extra={"source_path": source_path, "source_line": start_line},
            )
        )
        paragraph = []
        paragraph_closed = False

    return blocks

"""Document loaders for the knowledge-base formats."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Iterator

import yaml
from markdown_it import MarkdownIt

from campus_chat.ingest.types import LoadedDocument

_MD = MarkdownIt()
_INLINE_SPACE_RE = re.compile(r"[ \t\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


class BaseLoader:
    """Common loader interface."""

    suffixes: tuple[str, ...] = ()
    mime_type: str = "application/octet-stream"

    def can_load(self, path: Path) -> bool:
        return path.suffix.lower() in self.suffixes

    def load(self, path: Path) -> LoadedDocument:  # pragma: no cover - interface
        raise NotImplementedError


class MarkdownLoader(BaseLoader):
    suffixes = (".md", ".markdown")
    mime_type = "text/markdown"

    def load(self, path: Path) -> LoadedDocument:
        raw = path.read_bytes()
        text = raw.decode("utf-8", errors="ignore")
        front_matter, body = _split_front_matter(text)
        metadata: dict[str, object] = {"path": str(path)}
        if front_matter:
            metadata["front_matter"] = front_matter
        title = str(front_matter.get("title")) if front_matter and front_matter.get("title") else _title_from_stem(path)
        return LoadedDocument(
            path=path,
            text=_markdown_to_text(body),
            title=title,
            mime=self.mime_type,
            metadata=metadata,
            modified_ts=int(path.stat().st_mtime * 1000),
            size_bytes=len(raw),
        )


class TextLoader(BaseLoader):
    suffixes = (".txt", ".text")
    mime_type = "text/plain"

    def load(self, path: Path) -> LoadedDocument:
        raw = path.read_bytes()
        return LoadedDocument(
            path=path,
            text=tidy(raw.decode("utf-8", errors="ignore")),
            title=_title_from_stem(path),
            mime=self.mime_type,
            metadata={"path": str(path)},
            modified_ts=int(path.stat().st_mtime * 1000),
            size_bytes=len(raw),
        )


class LoaderRegistry:
    """Registry that selects an appropriate loader for a path."""

    def __init__(self) -> None:
        self._loaders: list[BaseLoader] = [MarkdownLoader(), TextLoader()]

    def register(self, loader: BaseLoader) -> None:
        self._loaders.append(loader)

    def for_path(self, path: Path) -> BaseLoader | None:
        for loader in self._loaders:
            if loader.can_load(path):
                return loader
        return None

    def supports(self, path: Path) -> bool:
        return self.for_path(path) is not None

    def load(self, path: Path) -> LoadedDocument:
        loader = self.for_path(path)
        if loader is None:
            raise ValueError(f"No loader registered for suffix {path.suffix}")
        return loader.load(path)

    def iter_directory(self, directory: Path) -> Iterator[Path]:
        """Supported files under ``directory`` in a stable order."""
        for path in sorted(directory.rglob("*")):
            if path.is_file() and self.supports(path):
                yield path


def load_corpus(paths: Iterable[Path], registry: LoaderRegistry | None = None) -> dict[str, str]:
    """Map document stem to text; used by the keyword fallback scorer."""
    registry = registry or LoaderRegistry()
    corpus: dict[str, str] = {}
    for path in paths:
        if registry.supports(path):
            document = registry.load(path)
            corpus[document.source_id] = document.text
    return corpus


def tidy(text: str) -> str:
    """Collapse runs of spaces and blank lines while keeping paragraph breaks."""
    lines = [_INLINE_SPACE_RE.sub(" ", line).strip() for line in text.replace("\r\n", "\n").split("\n")]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


def _split_front_matter(text: str) -> tuple[dict[str, object] | None, str]:
    if text.startswith("---"):
        parts = text.split("---", 2)
        if len(parts) >= 3:
            try:
                front_matter = yaml.safe_load(parts[1]) or {}
            except yaml.YAMLError:
                return None, text
            if isinstance(front_matter, dict):
                return front_matter, parts[2]
    return None, text


def _markdown_to_text(text: str) -> str:
    tokens = _MD.parse(text)
    parts: list[str] = []
    for token in tokens:
        content = token.content.strip()
        if token.type == "inline" and content:
            parts.append(_strip_inline_markup(token))
        elif token.type in ("fence", "code_block") and content:
            parts.append(content)
    return tidy("\n\n".join(parts) if parts else text)


def _strip_inline_markup(token) -> str:
    """Plain text of an inline token: link targets and emphasis markers removed."""
    if not token.children:
        return token.content.strip()
    pieces: list[str] = []
    for child in token.children:
        if child.type in ("text", "code_inline"):
            pieces.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            pieces.append(" ")
        elif child.type == "image":
            pieces.append(child.content)
    return "".join(pieces).strip()


def _title_from_stem(path: Path) -> str:
    return path.stem.replace("-", " ").replace("_", " ").title()


__all__ = ["BaseLoader", "MarkdownLoader", "TextLoader", "LoaderRegistry", "load_corpus", "tidy"]

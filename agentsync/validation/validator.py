"""Content validator — check agent files before they are committed.

Checks run in order and stop early only when later checks cannot be
meaningful (missing file, binary content, undecodable bytes):

1. Existence and size
2. Encoding (UTF-8, no NUL bytes)
3. Leftover conflict markers
4. Syntax by file type (YAML, JSON, Markdown front matter)
5. Embedded secrets
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import yaml

from agentsync.backend.base import contains_conflict_markers
from agentsync.config import DEFAULT_MAX_FILE_SIZE
from agentsync.models.results import ValidationDefect
from agentsync.validation.secrets import compile_patterns, find_secrets

YAML_SUFFIXES = {".yaml", ".yml"}
JSON_SUFFIXES = {".json"}
MARKDOWN_SUFFIXES = {".md", ".markdown"}


class DefectCode:
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    BINARY_CONTENT = "BINARY_CONTENT"
    ENCODING = "ENCODING"
    CONFLICT_MARKERS = "CONFLICT_MARKERS"
    YAML_SYNTAX = "YAML_SYNTAX"
    JSON_SYNTAX = "JSON_SYNTAX"
    FRONTMATTER_SYNTAX = "FRONTMATTER_SYNTAX"
    SECRET_DETECTED = "SECRET_DETECTED"


@dataclass(frozen=True)
class ValidationReport:
    """Result of validating a single file."""

    path: str
    defects: tuple[ValidationDefect, ...] = ()

    @property
    def is_valid(self) -> bool:
        return len(self.defects) == 0

    @property
    def codes(self) -> list[str]:
        return [d.code for d in self.defects]


class ContentValidator:
    """Validates agent files relative to a repository root."""

    def __init__(
        self,
        root: str | Path = ".",
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        secret_patterns: list[str] | None = None,
    ):
        self.root = Path(root)
        self.max_file_size = max_file_size
        self._patterns = compile_patterns(secret_patterns)

    def validate(self, path: str) -> ValidationReport:
        file_path = self.root / path
        defects: list[ValidationDefect] = []

        if not file_path.is_file():
            return ValidationReport(
                path, (ValidationDefect(DefectCode.FILE_NOT_FOUND, f"File not found: {path}"),)
            )

        size = file_path.stat().st_size
        if size > self.max_file_size:
            defects.append(
                ValidationDefect(
                    DefectCode.FILE_TOO_LARGE,
                    f"File is {size} bytes; limit is {self.max_file_size}",
                )
            )

        raw = file_path.read_bytes()
        if b"\0" in raw:
            defects.append(
                ValidationDefect(DefectCode.BINARY_CONTENT, "File contains NUL bytes")
            )
            return ValidationReport(path, tuple(defects))

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            defects.append(
                ValidationDefect(DefectCode.ENCODING, f"Not valid UTF-8 at byte {e.start}")
            )
            return ValidationReport(path, tuple(defects))

        if contains_conflict_markers(text):
            defects.append(
                ValidationDefect(
                    DefectCode.CONFLICT_MARKERS,
                    "Unresolved conflict markers present",
                    line=_first_marker_line(text),
                )
            )
        else:
            defects.extend(_check_syntax(file_path.suffix.lower(), text))

        for lineno, name in find_secrets(text, self._patterns):
            defects.append(
                ValidationDefect(DefectCode.SECRET_DETECTED, f"Possible {name}", line=lineno)
            )

        return ValidationReport(path, tuple(defects))

    def validate_many(self, paths: list[str]) -> list[ValidationReport]:
        """Validate every path, sorted, without stopping at the first failure."""
        return [self.validate(p) for p in sorted(set(paths))]


def _first_marker_line(text: str) -> int:
    for lineno, line in enumerate(text.splitlines(), start=1):
        if line.startswith("<<<<<<<"):
            return lineno
    return 0


def _yaml_defect(code: str, error: yaml.YAMLError, offset: int = 0) -> ValidationDefect:
    mark = getattr(error, "problem_mark", None)
    line = mark.line + 1 + offset if mark is not None else 0
    problem = getattr(error, "problem", None) or str(error).splitlines()[0]
    return ValidationDefect(code, f"Invalid YAML: {problem}", line=line)


def _check_syntax(suffix: str, text: str) -> list[ValidationDefect]:
    if suffix in YAML_SUFFIXES:
        try:
            list(yaml.safe_load_all(text))
        except yaml.YAMLError as e:
            return [_yaml_defect(DefectCode.YAML_SYNTAX, e)]

    elif suffix in JSON_SUFFIXES:
        try:
            json.loads(text)
        except json.JSONDecodeError as e:
            return [ValidationDefect(DefectCode.JSON_SYNTAX, f"Invalid JSON: {e.msg}", line=e.lineno)]

    elif suffix in MARKDOWN_SUFFIXES:
        return _check_frontmatter(text)

    return []


def _check_frontmatter(text: str) -> list[ValidationDefect]:
    """Validate a leading ``---`` YAML block in a Markdown file, if any."""
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return []

    for end, line in enumerate(lines[1:], start=1):
        if line.strip() in ("---", "..."):
            break
    else:
        return [
            ValidationDefect(DefectCode.FRONTMATTER_SYNTAX, "Front matter is never closed", line=1)
        ]

    block = "\n".join(lines[1:end])
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        return [_yaml_defect(DefectCode.FRONTMATTER_SYNTAX, e, offset=1)]
    if data is not None and not isinstance(data, dict):
        return [
            ValidationDefect(
                DefectCode.FRONTMATTER_SYNTAX, "Front matter must be a YAML mapping", line=2
            )
        ]
    return []

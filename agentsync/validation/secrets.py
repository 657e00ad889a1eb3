"""Patterns for credentials that must never reach shared history."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class SecretPattern:
    name: str
    regex: re.Pattern


BUILTIN_PATTERNS = [
    SecretPattern("AWS access key id", re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b")),
    SecretPattern(
        "AWS secret access key",
        re.compile(r"(?i)aws_secret_access_key\s*[:=]\s*['\"]?[A-Za-z0-9/+=]{40}"),
    ),
    SecretPattern("GitHub token", re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,}\b")),
    SecretPattern("GitHub fine-grained token", re.compile(r"\bgithub_pat_[A-Za-z0-9_]{22,}\b")),
    SecretPattern("Slack token", re.compile(r"\bxox[abprs]-[A-Za-z0-9-]{10,}\b")),
    SecretPattern("API secret key", re.compile(r"\bsk-(?:ant-|proj-)?[A-Za-z0-9_-]{20,}\b")),
    SecretPattern("Google API key", re.compile(r"\bAIza[0-9A-Za-z_-]{35}\b")),
    SecretPattern(
        "Private key block",
        re.compile(r"-----BEGIN (?:RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY( BLOCK)?-----"),
    ),
    SecretPattern(
        "Credential assignment",
        re.compile(
            r"(?i)\b(?:api[_-]?key|secret|password|passwd|access[_-]?token|auth[_-]?token)"
            r"\s*[:=]\s*['\"][^'\"\s]{8,}['\"]"
        ),
    ),
]

# Values that look like assignments but are obviously placeholders
PLACEHOLDER_HINTS = ("example", "placeholder", "changeme", "your_", "<", "${", "xxxx", "****")


def compile_patterns(extra: list[str] | None = None) -> list[SecretPattern]:
    """Built-in patterns plus user-supplied regexes.

    Raises:
        re.error: If an extra pattern does not compile.
    """
    patterns = list(BUILTIN_PATTERNS)
    for i, source in enumerate(extra or []):
        patterns.append(SecretPattern(f"Custom pattern {i + 1}", re.compile(source)))
    return patterns


def find_secrets(text: str, patterns: list[SecretPattern]) -> list[tuple[int, str]]:
    """Return (line number, pattern name) for each line containing a secret.

    The matched text itself is never returned so that reports cannot leak it.
    """
    findings: list[tuple[int, str]] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        for pattern in patterns:
            match = pattern.regex.search(line)
            if not match:
                continue
            if any(hint in match.group(0).lower() for hint in PLACEHOLDER_HINTS):
                continue
            findings.append((lineno, pattern.name))
            break
    return findings

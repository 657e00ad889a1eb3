"""Content validation gate run on every changed agent file before commit."""

from agentsync.validation.validator import ContentValidator, ValidationReport

__all__ = ["ContentValidator", "ValidationReport"]

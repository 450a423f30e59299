"""
metadata/validator.py — checks for ruleforge YAML rule files.

Two passes per file:
1. JSON Schema validation of the document structure (``rules.schema.json``)
2. Semantic validation: every validator kind must be registered, and every
   ``equalTo`` target should be a declared or known attribute

Usage:
    from ruleforge.metadata.validator import validate_rules_path

    issues = validate_rules_path(Path("rules"))
    for issue in issues:
        print(issue)
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from ruleforge.metadata.loader import rule_files
from ruleforge.validation.registry import ValidatorRegistry
from ruleforge.validation.rules import normalize_rules
from ruleforge.validation.validators import register_builtin_validators

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).parent / "schemas" / "rules.schema.json"


@dataclass
class ValidationIssue:
    """A single finding for a rules YAML file."""

    file: Path
    message: str
    path: str = ""          # Location within the document, e.g. "entity/validation/age"
    severity: str = "error" # "error" | "warning"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[{self.severity.upper()}] {self.file}{loc}: {self.message}"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_schema() -> dict[str, Any]:
    with _SCHEMA_PATH.open() as fh:
        return json.load(fh)


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def _semantic_issues(yaml_path: Path, doc: dict[str, Any]) -> list[ValidationIssue]:
    register_builtin_validators()

    entity = doc["entity"]
    rules = entity.get("validation") or {}
    issues: list[ValidationIssue] = []

    for attr, declaration in rules.items():
        location = f"entity/validation/{attr}"
        for descriptor in normalize_rules(declaration):
            if not ValidatorRegistry.is_registered(descriptor.kind):
                issues.append(
                    ValidationIssue(
                        file=yaml_path,
                        message=f"Unknown validator '{descriptor.kind}'",
                        path=location,
                    )
                )
            elif descriptor.kind == "equalTo" and descriptor.parameter not in rules:
                issues.append(
                    ValidationIssue(
                        file=yaml_path,
                        message=(
                            f"equalTo references '{descriptor.parameter}', "
                            "which has no rules of its own"
                        ),
                        path=location,
                        severity="warning",
                    )
                )
    return issues


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_rules_file(
    yaml_path: Path,
    *,
    schema: dict[str, Any] | None = None,
) -> list[ValidationIssue]:
    """
    Validate a single rules YAML file.

    Args:
        yaml_path: Path to the YAML file to validate.
        schema:    Pre-loaded schema.  Loaded automatically if omitted.

    Returns:
        A list of :class:`ValidationIssue` objects (empty on success).
    """
    # 1. Parse YAML
    try:
        with yaml_path.open() as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return [ValidationIssue(file=yaml_path, message=f"YAML parse error: {exc}")]

    if raw is None:
        return [
            ValidationIssue(file=yaml_path, message="File is empty or contains only whitespace")
        ]

    # 2. Structure
    validator = Draft202012Validator(schema or _load_schema())
    issues = [
        ValidationIssue(file=yaml_path, message=error.message, path=_json_path(error))
        for error in sorted(validator.iter_errors(raw), key=lambda e: list(e.path))
    ]
    if issues:
        return issues

    # 3. Semantics (only meaningful once the structure is sound)
    return _semantic_issues(yaml_path, raw)


def validate_rules_path(
    rules_path: Path,
    *,
    strict: bool = False,
) -> list[ValidationIssue]:
    """
    Validate a rules file, or every YAML file in a rules directory.

    Args:
        rules_path: A YAML file or a directory containing YAML files.
        strict:     If ``True``, warnings are escalated to errors.

    Returns:
        A flat list of :class:`ValidationIssue` objects across all files.
        Empty list means all files are valid.
    """
    if not rules_path.exists():
        return [
            ValidationIssue(
                file=rules_path,
                message=f"Rules path does not exist: {rules_path}",
            )
        ]

    try:
        schema = _load_schema()
    except (FileNotFoundError, json.JSONDecodeError) as exc:
        return [
            ValidationIssue(
                file=_SCHEMA_PATH,
                message=f"Failed to load JSON Schema: {exc}",
            )
        ]

    files = [rules_path] if rules_path.is_file() else rule_files(rules_path)
    if not files:
        logger.warning("No rule files found under %s", rules_path)

    all_issues: list[ValidationIssue] = []
    for yaml_file in files:
        file_issues = validate_rules_file(yaml_file, schema=schema)
        if strict:
            for issue in file_issues:
                if issue.severity == "warning":
                    issue.severity = "error"
        all_issues.extend(file_issues)

    return all_issues

"""Rules CLI commands — validate rule files and check records against them."""

import asyncio
import json
from pathlib import Path

import click
import yaml

from ruleforge.metadata.loader import RuleLoader
from ruleforge.metadata.validator import validate_rules_path
from ruleforge.validation import (
    ConfigurationError,
    LabelFormatter,
    ValidationOptions,
    mixin,
    register_builtin_validators,
)


@click.group()
def rules():
    """Rule file commands."""
    pass


@rules.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Treat warnings as errors.",
)
def validate(path: Path, strict: bool):
    """Validate rule YAML files against the rules schema."""
    issues = validate_rules_path(path, strict=strict)

    errors = [i for i in issues if i.severity == "error"]
    warnings = [i for i in issues if i.severity == "warning"]

    for issue in issues:
        colour = "red" if issue.severity == "error" else "yellow"
        click.echo(click.style(str(issue), fg=colour))

    if errors:
        click.echo(
            click.style(
                f"\n{len(errors)} error(s) found"
                + (f", {len(warnings)} warning(s)" if warnings else ""),
                fg="red",
                bold=True,
            )
        )
        raise SystemExit(1)

    if warnings:
        click.echo(click.style(f"{len(warnings)} warning(s) found.", fg="yellow"))

    loader = RuleLoader(path)
    try:
        loader.load_all()
    except (ValueError, yaml.YAMLError) as e:
        click.echo(click.style(f"\nLoading rules failed: {e}", fg="red"), err=True)
        raise SystemExit(1)

    click.echo(f"\nLoaded {len(loader.entities)} entities:")
    for name in loader.list_entities():
        entity = loader.get_entity(name)
        click.echo(f"  ✓ {name} ({len(entity.validation)} validated attributes)")

    click.echo(click.style("\nAll rules are valid.", fg="green", bold=True))


@click.command()
@click.argument("rules_path", type=click.Path(exists=True, path_type=Path))
@click.argument("record_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--entity", "entity_name", default=None, help="Entity whose rules to apply.")
@click.option(
    "--labels",
    "label_formatter",
    type=click.Choice([f.value for f in LabelFormatter]),
    default=None,
    help="How attribute names appear in messages.",
)
@click.option(
    "--force-update",
    is_flag=True,
    default=False,
    help="Report failures but exit successfully.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the result as JSON.")
def check(
    rules_path: Path,
    record_path: Path,
    entity_name: str | None,
    label_formatter: str | None,
    force_update: bool,
    as_json: bool,
):
    """Validate a YAML or JSON record against an entity's rules."""
    loader = RuleLoader(rules_path)
    try:
        loader.load_all()
    except (ValueError, yaml.YAMLError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(2)

    if entity_name is None:
        if len(loader.entities) != 1:
            click.echo(
                "Error: --entity is required when the rules declare "
                f"{len(loader.entities)} entities ({', '.join(loader.list_entities())}).",
                err=True,
            )
            raise SystemExit(2)
        entity_name = loader.list_entities()[0]

    entity_rules = loader.get_entity(entity_name)
    if entity_rules is None:
        click.echo(f"Error: Unknown entity '{entity_name}'", err=True)
        raise SystemExit(2)

    try:
        with record_path.open() as fh:
            record = yaml.safe_load(fh) or {}
    except yaml.YAMLError as e:
        click.echo(f"Error: {record_path} is not valid YAML or JSON: {e}", err=True)
        raise SystemExit(2)
    if not isinstance(record, dict):
        click.echo(f"Error: {record_path} must contain a mapping of attributes", err=True)
        raise SystemExit(2)

    register_builtin_validators()
    model = entity_rules.build_model()(record)
    options = ValidationOptions.from_env().merge(
        label_formatter=label_formatter,
        force_update=force_update or None,
    )
    try:
        result = asyncio.run(mixin(model, options).run())
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(2)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.is_valid:
        click.echo(click.style(f"{entity_name}: valid", fg="green", bold=True))
    else:
        for attr, message in result.invalid_attrs.items():
            click.echo(click.style(f"  ✗ {attr}: {message}", fg="red"))
        click.echo(
            click.style(
                f"\n{entity_name}: {len(result.invalid_attrs)} invalid attribute(s)",
                fg="red",
                bold=True,
            )
        )

    if not result.is_valid and not options.force_update:
        raise SystemExit(1)

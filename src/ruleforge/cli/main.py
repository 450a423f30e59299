"""ruleforge CLI entry point."""

import logging

import click


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool):
    """ruleforge — declarative async validation CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
from ruleforge.cli.rules_cmd import check, rules  # noqa: E402

cli.add_command(rules)
cli.add_command(check)

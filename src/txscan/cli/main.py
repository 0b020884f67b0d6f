"""Main CLI entry point with command groups"""

import logging

import click

from txscan.__version__ import __version__
from txscan.cli.scan import scan_command
from txscan.cli.sessions import sessions_command
from txscan.utils import get_str_env


class DefaultCommandGroup(click.Group):
    """Custom Click Group that allows a default command"""

    def parse_args(self, ctx, args):
        # During shell completion, don't redirect to default command
        if ctx.resilient_parsing:
            return super().parse_args(ctx, args)

        # Bare invocation and --help/--version show group help/version
        if not args or args[0] in ('--help', '-h', '--version'):
            return super().parse_args(ctx, args)

        if args[0] in self.commands:
            return super().parse_args(ctx, args)

        # Otherwise, treat as scan command (default)
        return super().parse_args(ctx, ['scan'] + args)


@click.group(cls=DefaultCommandGroup, invoke_without_command=True)
@click.version_option(version=__version__, prog_name='txscan')
@click.pass_context
def cli(ctx):
    """
    txscan - Incremental session transcript scanner.

    \b
    Commands:
      txscan <session-id> <transcript>   Scan a transcript (default command)
      txscan sessions list               List sessions with saved state
      txscan sessions show <session-id>  Show saved state for a session
      txscan sessions delete <id>        Delete saved state (next scan is full)

    \b
    Examples:
      txscan abc123 ~/.sessions/abc123.jsonl
      txscan scan abc123 transcript.jsonl --json
      txscan sessions list --json

    \b
    Environment:
      TXSCAN_STATE_DIR     State directory
      TXSCAN_CACHE_TTL     Result cache TTL in seconds
      TXSCAN_MAX_READ_MB   Most bytes read by one scan
      TXSCAN_LOG_LEVEL     Log level (default: WARNING)
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)


# Register subcommands (scan is the default command)
cli.add_command(scan_command, name='scan')
cli.add_command(sessions_command, name='sessions')


def configure_logging():
    """Configure root logging from TXSCAN_LOG_LEVEL."""
    log_level = get_str_env('TXSCAN_LOG_LEVEL', 'WARNING').upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.WARNING),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


def main():
    """Entry point for the CLI"""
    configure_logging()
    cli()


if __name__ == '__main__':
    main()

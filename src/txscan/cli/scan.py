"""CLI command for scanning a transcript."""

import sys

import click
from prometheus_client import generate_latest

from txscan.errors import InvalidSessionIdError
from txscan.scanner import TranscriptScanner
from txscan.state import StateManager


@click.command('scan')
@click.argument('session_id')
@click.argument('transcript')
@click.option('--json', 'json_output', is_flag=True, help='Output in JSON format')
@click.option('--state-dir', type=click.Path(file_okay=False), default=None, help='State directory override')
@click.option('--no-color', is_flag=True, help='Disable colored output')
@click.option('--prometheus', 'show_metrics', is_flag=True, help='Print Prometheus metrics after the result')
def scan_command(
    session_id: str,
    transcript: str,
    json_output: bool,
    state_dir: str | None,
    no_color: bool,
    show_metrics: bool,
):
    """Scan a session transcript.

    Only bytes appended since the previous scan of SESSION_ID are read; the
    result still covers the whole transcript.

    \b
    Examples:
        txscan scan abc123 transcript.jsonl
        txscan scan abc123 transcript.jsonl --json
        txscan scan abc123 transcript.jsonl --state-dir /tmp/state

    \b
    Exit codes:
        0  Scan completed
        2  Invalid session id, or transcript missing
    """
    scanner = TranscriptScanner(state_manager=StateManager(state_dir=state_dir))

    try:
        result = scanner.scan(session_id, transcript)
    except InvalidSessionIdError as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(2)
    except FileNotFoundError:
        click.echo(f'Error: transcript not found: {transcript}', err=True)
        sys.exit(2)
    except IsADirectoryError:
        click.echo(f'Error: transcript is a directory: {transcript}', err=True)
        sys.exit(2)
    except OSError as e:
        click.echo(f'Error: cannot read {transcript}: {e}', err=True)
        sys.exit(1)

    if json_output:
        click.echo(result.model_dump_json(indent=2))
    else:
        colorize = not no_color and sys.stdout.isatty()
        click.echo(result.to_cli(colorize=colorize))

    if show_metrics:
        click.echo(generate_latest().decode('utf-8'), nl=False)

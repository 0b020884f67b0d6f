"""CLI commands for scanner state housekeeping."""

import json
import sys

import click

from txscan.errors import InvalidSessionIdError
from txscan.models import ScannerState
from txscan.state import StateManager
from txscan.utils import format_ago, human_readable_size


def _state_summary(session_id: str, state: ScannerState) -> dict:
    return {
        'session_id': session_id,
        'last_offset': state.last_offset,
        'last_line': state.last_line,
        'last_scan_at': state.last_scan_at,
        'extractors': sorted(state.extractor_data),
    }


@click.group('sessions')
@click.option('--state-dir', type=click.Path(file_okay=False), default=None, help='State directory override')
@click.pass_context
def sessions_command(ctx, state_dir: str | None):
    """Inspect or delete saved scanner state.

    \b
    Examples:
        txscan sessions list
        txscan sessions show abc123 --json
        txscan sessions delete abc123
    """
    ctx.obj = StateManager(state_dir=state_dir)


@sessions_command.command('list')
@click.option('--json', 'json_output', is_flag=True, help='Output in JSON format')
@click.pass_obj
def list_command(manager: StateManager, json_output: bool):
    """List sessions that have saved state."""
    summaries = []
    for session_id in manager.list_sessions():
        state = manager.load(session_id)
        if state is None:
            # Unreadable state is rescanned from scratch, report it as such
            summaries.append({'session_id': session_id, 'last_offset': 0, 'valid': False})
            continue
        summaries.append({**_state_summary(session_id, state), 'valid': True})

    if json_output:
        click.echo(json.dumps(summaries, indent=2))
        return

    if not summaries:
        click.echo(f'No sessions in {manager.state_dir}')
        return

    for summary in summaries:
        if not summary['valid']:
            click.echo(f'{summary["session_id"]}  (invalid state, next scan is full)')
            continue
        click.echo(
            f'{summary["session_id"]}  {human_readable_size(summary["last_offset"])} read, '
            f'{summary["last_line"]} records, scanned {format_ago(summary["last_scan_at"])} ago'
        )


@sessions_command.command('show')
@click.argument('session_id')
@click.option('--json', 'json_output', is_flag=True, help='Output the full state as JSON')
@click.pass_obj
def show_command(manager: StateManager, session_id: str, json_output: bool):
    """Show saved state for SESSION_ID."""
    try:
        # Inspection never migrates legacy state, which would write a state file
        state = manager.load(session_id, migrate=False)
    except InvalidSessionIdError as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(2)

    if state is None:
        click.echo(f'No state for session {session_id}', err=True)
        sys.exit(1)

    if json_output:
        click.echo(state.model_dump_json(indent=2))
        return

    summary = _state_summary(session_id, state)
    click.echo(f'Session:     {session_id}')
    click.echo(f'Offset:      {summary["last_offset"]} bytes')
    click.echo(f'Records:     {summary["last_line"]}')
    click.echo(f'Last scan:   {format_ago(summary["last_scan_at"])} ago')
    click.echo(f'Extractors:  {", ".join(summary["extractors"]) or "none"}')


@sessions_command.command('delete')
@click.argument('session_id')
@click.pass_obj
def delete_command(manager: StateManager, session_id: str):
    """Delete saved state for SESSION_ID; its next scan reads the whole transcript."""
    try:
        deleted = manager.delete(session_id)
    except InvalidSessionIdError as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(2)

    if not deleted:
        click.echo(f'No state for session {session_id}', err=True)
        sys.exit(1)

    click.echo(f'Deleted state for {session_id}')

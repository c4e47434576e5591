"""Main CLI entry point for PDS Migration Tool."""

import sys
import asyncio
from typing import Awaitable, Callable, Optional
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
)
from rich.table import Table

from .. import __version__
from ..api.exceptions import AuthFactorTokenRequiredError
from ..config.config import Config
from ..models.request import MigrationRequest
from ..utils.logging import setup_logging
from ..migration.engine import MigrationEngine
from ..migration.orchestrator import (
    COMPLETE_MESSAGE,
    STAGE_MESSAGES,
    MigrationSummary,
    StatusCallback,
)

console = Console()

MAX_AUTH_FACTOR_ATTEMPTS = 3

# Stage 7 covers everything finalize_identity reports
PROGRESS_STEPS = len(STAGE_MESSAGES) + 1
_STAGE_POSITIONS = {
    message: position for position, message in enumerate(STAGE_MESSAGES.values())
}


@click.group()
@click.version_option(version=__version__, prog_name='pds-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """PDS Migration Tool - Move an AT Protocol account to another PDS."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Setup basic logging first (will be enhanced later with config)
    log_level = 'DEBUG' if verbose else 'WARNING'
    setup_logging(log_level)


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
@click.pass_context
def init(ctx: click.Context, output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]PDS Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)

        console.print(f'[green]✓[/green] Configuration template created at: {output}')
        console.print(
            f'[yellow]Please edit {output} with your destination PDS details[/yellow]'
        )

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)


@cli.command()
@click.option('--old-handle', prompt='Old handle (e.g. alice.bsky.social)')
@click.option(
    '--password',
    prompt='Password',
    hide_input=True,
    envvar='PDS_MIGRATE_PASSWORD',
)
@click.option('--email', prompt='Email for the new account')
@click.option('--handle', prompt='New handle (e.g. alice.pds.example.com)')
@click.option(
    '--invite-code',
    default='',
    prompt='Invite code (leave blank if none)',
    show_default=False,
)
@click.pass_context
def migrate(
    ctx: click.Context,
    old_handle: str,
    password: str,
    email: str,
    handle: str,
    invite_code: str,
) -> None:
    """Move an account to the destination PDS."""
    console.print(
        Panel.fit(
            '[bold blue]PDS Migration Tool[/bold blue]\n'
            'Starting migration process...',
            border_style='blue',
        )
    )

    try:
        config = _load_config(ctx)

        _setup_logging_with_config(ctx, config)

        request = MigrationRequest(
            old_handle=old_handle,
            password=password,
            email=email,
            handle=handle,
            invite_code=invite_code or None,
        )

        asyncio.run(_run_migration(config, request))

    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Check that both PDS instances are reachable."""
    console.print(
        Panel.fit(
            '[bold cyan]PDS Migration Tool[/bold cyan]\nValidating configuration...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)

        with MigrationEngine(config) as engine:
            asyncio.run(engine.test_connectivity())

        console.print('[green]✓[/green] Connectivity validation passed')
        console.print('[green]✓[/green] Configuration validation completed')

    except Exception as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the migration configuration."""
    console.print(
        Panel.fit(
            '[bold magenta]PDS Migration Tool[/bold magenta]\nMigration Status',
            border_style='magenta',
        )
    )

    try:
        config = _load_config(ctx)

        _setup_logging_with_config(ctx, config)

        table = Table(title='Migration Configuration')
        table.add_column('Setting', style='cyan')
        table.add_column('Value', style='green')

        table.add_row('Source PDS', config.source.url)
        table.add_row('Destination PDS', config.destination.url)
        table.add_row('Blob Page Size', str(config.migration.blob_page_size))
        table.add_row('Request Timeout', f'{config.destination.timeout}s')
        table.add_row('Log Level', config.logging.level)

        console.print(table)

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to load status: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        if not Path(config_path).exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')
        return Config.from_file(config_path)
    else:
        default_paths = ['config.yaml', 'config.yml', '.pds-migrate.yaml']
        for path in default_paths:
            if Path(path).exists():
                return Config.from_file(path)

        # Fall back to environment variables
        try:
            return Config.from_env()
        except ValueError:
            raise FileNotFoundError(
                'No configuration found. Use --config to specify a file or run "pds-migrate init" to create one.'
            )


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)

    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level,
        log_file=config.logging.file,
        log_format=config.logging.format,
    )


async def _run_migration(config: Config, request: MigrationRequest) -> None:
    """Run both migration phases, prompting for the emailed codes."""
    with MigrationEngine(config) as engine:
        summary = await _migrate_with_auth_factor(engine, request)
        _display_migration_summary(summary)

        console.print(
            '[yellow]Check your email for a PLC token to finish the migration.[/yellow]'
        )
        token = click.prompt('PLC token')

        await _run_with_progress(
            lambda update: engine.finalize_identity(token, update), 'Finalizing'
        )
        console.print(f'[green]✓[/green] {COMPLETE_MESSAGE}')


async def _migrate_with_auth_factor(
    engine: MigrationEngine, request: MigrationRequest
) -> MigrationSummary:
    """Run ``migrate``, asking for the emailed two-factor code when required."""
    use_auth_factor = False
    attempt = 1

    while True:
        try:
            return await _run_with_progress(
                lambda update: engine.migrate(
                    request, update, use_auth_factor=use_auth_factor
                ),
                'Migration',
            )
        except AuthFactorTokenRequiredError:
            if attempt >= MAX_AUTH_FACTOR_ATTEMPTS:
                raise
            console.print(
                '[yellow]Two-factor required. Check your email for the code.[/yellow]'
            )
            code = click.prompt('Two-factor code')
            request = MigrationRequest(
                **{**request.dict(), 'auth_factor_token': code}
            )
            use_auth_factor = True
            attempt += 1


async def _run_with_progress(
    run: Callable[[StatusCallback], Awaitable], operation_name: str
):
    """Run one phase with a progress bar driven by its status messages."""
    with Progress(
        SpinnerColumn(),
        TextColumn('[progress.description]{task.description}'),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(
            f'[blue]{operation_name} starting...', total=PROGRESS_STEPS
        )

        def update_status(message: str) -> None:
            # Unknown messages belong to the finalize phase
            position = _STAGE_POSITIONS.get(message, len(STAGE_MESSAGES))
            completed = PROGRESS_STEPS if message == COMPLETE_MESSAGE else position
            progress.update(task, completed=completed, description=message)

        try:
            result = await run(update_status)
        except Exception as e:
            progress.update(task, description=f'[red]Failed: {e}')
            raise

        progress.update(task, description=f'[green]{operation_name} completed')
        return result


def _display_migration_summary(summary: MigrationSummary) -> None:
    """Display migration summary results."""
    table = Table(title='Migration Summary')
    table.add_column('Item', style='cyan')
    table.add_column('Value', style='green')

    table.add_row('DID', summary.did)
    table.add_row('Account created', '✓' if summary.account_created else 'reused')
    table.add_row('Blobs transferred', str(summary.blobs_transferred))
    table.add_row('Blobs failed', str(len(summary.failed_blobs)))

    console.print(table)

    if summary.completed_at:
        duration = summary.completed_at - summary.started_at
        console.print(f'\n[blue]Migration Duration:[/blue] {duration}')

    if summary.failed_blobs:
        console.print(f'\n[red]Failed blobs ({len(summary.failed_blobs)}):[/red]')
        for cid in summary.failed_blobs[:5]:
            console.print(f'  • {cid}')
        if len(summary.failed_blobs) > 5:
            console.print(f'  ... and {len(summary.failed_blobs) - 5} more')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()

import click
import logging

from .config.config_loader import ConfigLoader
from .db_sync.errors import ConnectionCheckError
from .db_sync.models import SyncResult
from .db_sync.sync_service import DatabaseSyncService
from .logging_config import setup_logging

logger = logging.getLogger(__name__)

def _build_service(ctx) -> DatabaseSyncService:
    loader = ctx.obj['loader']
    return DatabaseSyncService(
        local=loader.endpoint('local'),
        cloud=loader.endpoint('cloud'),
        config=loader.sync_config(),
    )

def _report(result: SyncResult) -> None:
    for message in result.messages:
        click.echo(message)
    if result.duration is not None:
        click.echo(f"Duration: {result.duration.total_seconds():.1f}s")
    if not result.success:
        raise click.ClickException(result.error_message or "Sync failed")

@click.group()
@click.option('--config', '-c', type=click.Path(exists=True),
              help='Path to configuration file')
@click.pass_context
def cli(ctx, config):
    """Local/cloud database table replication"""
    loader = ConfigLoader(config)
    try:
        loader.load()
    except Exception as e:
        raise click.ClickException(f"Could not load configuration: {str(e)}")
    loader.update_from_env()
    setup_logging(config=loader.config)

    ctx.ensure_object(dict)
    ctx.obj['loader'] = loader

@cli.command('test-connection')
@click.pass_context
def test_connection(ctx):
    """Check that both databases are reachable"""
    service = _build_service(ctx)
    for name in ('local', 'cloud'):
        try:
            service.test_connection(name)
            click.echo(f"✓ {name.capitalize()} database connection successful")
        except ConnectionCheckError as e:
            raise click.ClickException(f"{name} database: {str(e)}")

@cli.command()
@click.option('--device-id', '-d', help='Record the mirror in the tracking store for this device')
@click.pass_context
def mirror(ctx, device_id):
    """Copy every table from local to cloud"""
    service = _build_service(ctx)
    _report(service.sync_database(device_identifier=device_id))

@cli.command()
@click.option('--device-id', '-d', help='Device identifier scoping the change windows')
@click.pass_context
def sync(ctx, device_id):
    """Pull changes from cloud, then push local changes"""
    device_id = device_id or ctx.obj['loader'].device_identifier
    if not device_id:
        raise click.UsageError("A device identifier is required (--device-id or config)")

    service = _build_service(ctx)
    _report(service.sync_bidirectional(device_id))

@cli.command()
@click.option('--device-id', '-d', required=True, help='Device identifier')
@click.pass_context
def status(ctx, device_id):
    """Show the last sync of each table for a device"""
    service = _build_service(ctx)
    rows = service.sync_history(device_id)
    if not rows:
        click.echo(f"No sync history for {device_id}")
        return

    for row in rows:
        click.echo(
            f"{row['table_name']:<28} {row['last_sync_direction'] or '-':<8} "
            f"{row['last_sync_timestamp']}  {row['records_synced']} records"
        )

if __name__ == '__main__':
    cli()

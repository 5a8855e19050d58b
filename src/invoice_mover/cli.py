# cli.py
import json
import logging

import click

from invoice_mover.errors import InvoiceMoverError
from invoice_mover.factory import ComponentFactory
from invoice_mover.schemas import RecordKey, parse_date
from invoice_mover.settings import get_settings
from invoice_mover.utils.logging_utils import configure_logging

# Configure logging
logger = logging.getLogger(__name__)


@click.group()
@click.pass_context
def cli(ctx):
    """CLI commands for operating the invoice relocation pipeline"""
    if ctx.obj is None:
        settings = get_settings()
        configure_logging(settings.log_level)
        ctx.obj = ComponentFactory(settings)


def _record_key(file_name: str, date: str) -> RecordKey:
    try:
        return RecordKey(file_name=file_name, date=parse_date(date))
    except InvoiceMoverError as e:
        raise click.BadParameter(e.message, param_hint="DATE")


def _fail(error: InvoiceMoverError):
    raise click.ClickException(str(error))


@cli.command()
@click.pass_obj
def show_config(factory: ComponentFactory):
    """Show current configuration"""
    settings = factory.settings

    print("Current Configuration:")
    print(f"  Deployment Mode: {settings.deployment_mode}")
    print(f"  AWS Region: {settings.aws_region}")
    print(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    print(f"  Tracking Table: {settings.invoice_table_name}")
    print(f"  SQS Queue Name: {settings.sqs_queue_name}")
    print(f"  SQS Queue URL: {settings.sqs_queue_url}")
    print(f"  Dead-letter Queue: {settings.dead_letter_queue_name} (maxReceiveCount={settings.max_receive_count})")
    print(f"  Folders: {settings.source_folder} -> {settings.destination_folder}")
    print(f"  File Extension: {settings.file_extension}")
    print(f"  Moving Delay: {settings.moving_delay_seconds}s")
    print(f"  Stream Trigger Status: {settings.stream_trigger_status}")


@cli.command()
@click.option("--batches", default=1, show_default=True, type=click.IntRange(min=1),
              help="Number of bounded batches to receive")
@click.pass_obj
def consume(factory: ComponentFactory, batches):
    """Receive move requests from the queue and process them"""
    try:
        orchestrator = factory.orchestrator()
        acknowledged = failed = pending = 0
        for _ in range(batches):
            consumed = orchestrator.consume_batch()
            if not consumed:
                break
            for item in consumed:
                if item.error is not None:
                    failed += 1
                    print(f"  {item.message.message_id}: failed - {item.error}")
                elif item.deferred:
                    pending += 1
                    print(f"  {item.message.message_id}: {item.result.outcome.value} ({item.result.key})")
                else:
                    acknowledged += 1
                    print(f"  {item.message.message_id}: {item.result.outcome.value} ({item.result.key})")
    except InvoiceMoverError as e:
        _fail(e)
    print(f"Acknowledged {acknowledged}, requeued until due {pending}, failed {failed}")


@cli.command()
@click.pass_obj
def reconcile(factory: ComponentFactory):
    """Run the catch-up scan over due COPIED records"""
    try:
        report = factory.orchestrator().catch_up_scan()
    except InvoiceMoverError as e:
        _fail(e)
    print(json.dumps(report.to_dict(), indent=2))
    if report.failures:
        raise click.ClickException(f"{len(report.failures)} record(s) could not be moved")


@cli.command()
@click.pass_obj
def configure_dead_letter(factory: ComponentFactory):
    """Attach the dead-letter queue to the move-request queue"""
    settings = factory.settings
    try:
        arn = factory.queue().configure_dead_letter(settings.dead_letter_queue_name, settings.max_receive_count)
    except InvoiceMoverError as e:
        _fail(e)
    print(f"Dead-letter queue {arn} set (maxReceiveCount={settings.max_receive_count})")


@cli.command()
@click.option("--batches", default=1, show_default=True, type=click.IntRange(min=1),
              help="Number of bounded batches to delete")
@click.pass_obj
def purge_queue(factory: ComponentFactory, batches):
    """Receive and delete pending move requests"""
    deleted = 0
    try:
        queue = factory.queue()
        for _ in range(batches):
            count = queue.purge_batch()
            deleted += count
            if count == 0:
                break
    except InvoiceMoverError as e:
        _fail(e)
    print(f"Deleted {deleted} message(s)")


@cli.command()
@click.argument("file_name")
@click.argument("date")
@click.pass_obj
def delete_record(factory: ComponentFactory, file_name, date):
    """Delete the tracking record FILE_NAME / DATE (yyyy/MM/dd)"""
    key = _record_key(file_name, date)
    try:
        factory.tracking_store().delete(key)
    except InvoiceMoverError as e:
        _fail(e)
    print(f"Deleted record {key}")


@cli.command()
@click.argument("file_name")
@click.argument("date")
@click.option("--force", is_flag=True, help="Move even if the moving time has not been reached")
@click.pass_obj
def move(factory: ComponentFactory, file_name, date, force):
    """Attempt the move of FILE_NAME / DATE (yyyy/MM/dd) now"""
    key = _record_key(file_name, date)
    try:
        result = factory.orchestrator().attempt_move(key, force=force)
    except InvoiceMoverError as e:
        _fail(e)
    print(json.dumps(result.to_dict(), indent=2))


if __name__ == "__main__":
    cli()

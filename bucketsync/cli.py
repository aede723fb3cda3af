"""Command line interface for bucketsync."""

import logging
from pathlib import Path
from typing import Any, Callable

import click

from .config import SyncConfig
from .exceptions import BucketSyncError, SyncConfigError
from .output import OutputFormatter
from .store import create_store
from .sync import CycleReport, SyncEngine, SyncScheduler
from .utils import (
    DEFAULT_MULTIPART_THRESHOLD,
    DEFAULT_PART_CONCURRENCY,
    DEFAULT_PART_SIZE,
    DEFAULT_UPLOAD_WORKERS,
    MIB,
    MIN_PART_SIZE,
)

logger = logging.getLogger(__name__)

_THIRD_PARTY_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3", "apscheduler")


def sync_options(func: Callable) -> Callable:
    """Options shared by every command that runs a sync cycle."""
    options = [
        click.argument(
            "root", type=click.Path(exists=True, file_okay=False, path_type=Path)
        ),
        click.option(
            "--bucket",
            "-b",
            envvar="BUCKETSYNC_BUCKET",
            required=True,
            help="Target bucket name",
        ),
        click.option(
            "--region", envvar="BUCKETSYNC_REGION", default=None, help="Bucket region"
        ),
        click.option(
            "--endpoint-url",
            envvar="BUCKETSYNC_ENDPOINT_URL",
            default=None,
            help="Custom S3 endpoint (MinIO, OVH, ...)",
        ),
        click.option(
            "--workers",
            "-j",
            type=int,
            default=DEFAULT_UPLOAD_WORKERS,
            show_default=True,
            help="Number of files uploaded in parallel",
        ),
        click.option(
            "--multipart-threshold",
            type=int,
            default=DEFAULT_MULTIPART_THRESHOLD // MIB,
            show_default=True,
            help="Files larger than this (MB) use multipart upload",
        ),
        click.option(
            "--part-size",
            type=int,
            default=DEFAULT_PART_SIZE // MIB,
            show_default=True,
            help="Multipart part size in MB",
        ),
        click.option(
            "--part-concurrency",
            type=int,
            default=DEFAULT_PART_CONCURRENCY,
            show_default=True,
            help="Parts of one file uploaded in parallel",
        ),
        click.option(
            "--ignore",
            "-i",
            multiple=True,
            help="Literal path to exclude (repeatable, added to .syncignore)",
        ),
        click.option(
            "--match-filenames",
            is_flag=True,
            help="Also match ignore patterns against bare filenames",
        ),
        click.option(
            "--no-ignore-file",
            is_flag=True,
            help="Do not read ROOT/.syncignore",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_config(out: OutputFormatter, ctx: Any, **params: Any) -> SyncConfig:
    """Validate CLI values and build the sync configuration.

    Exits with status 1 on invalid values.
    """
    part_size = params["part_size"]
    multipart_threshold = params["multipart_threshold"]

    if params["workers"] < 1:
        out.error("Workers must be at least 1")
        ctx.exit(1)
    if params["part_concurrency"] < 1:
        out.error("Part concurrency must be at least 1")
        ctx.exit(1)
    if part_size * MIB < MIN_PART_SIZE:
        out.error(f"Part size must be at least {MIN_PART_SIZE // MIB}MB")
        ctx.exit(1)
    if multipart_threshold < 1:
        out.error("Multipart threshold must be at least 1MB")
        ctx.exit(1)

    try:
        return SyncConfig.load(
            root=params["root"],
            bucket=params["bucket"],
            extra_ignore=params["ignore"],
            use_ignore_file=not params["no_ignore_file"],
            region=params["region"],
            endpoint_url=params["endpoint_url"],
            upload_workers=params["workers"],
            multipart_threshold=multipart_threshold * MIB,
            part_size=part_size * MIB,
            part_concurrency=params["part_concurrency"],
            match_filenames=params["match_filenames"],
        )
    except SyncConfigError as e:
        out.error(f"Invalid configuration: {e}")
        ctx.exit(1)
        raise  # Unreachable, but helps type checker


def build_engine(config: SyncConfig, out: OutputFormatter) -> SyncEngine:
    """Create the S3 store and engine for ``config``."""
    store = create_store(
        bucket=config.bucket,
        region=config.region,
        endpoint_url=config.endpoint_url,
        max_pool_connections=config.connection_pool_size,
    )
    return SyncEngine(store, config, out)


def _finish(ctx: Any, out: OutputFormatter, report: CycleReport) -> None:
    if out.json_output:
        out.output_json(report.to_dict())
    if not report.success:
        ctx.exit(1)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="bucketsync")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """bucketsync - Mirror a local directory onto an S3 bucket."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("bucketsync").setLevel(logging.DEBUG)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)
        for name in _THIRD_PARTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


@main.command()
@sync_options
@click.option(
    "--dry-run", is_flag=True, help="Show what would be synced without changing it"
)
@click.pass_context
def sync(ctx: Any, dry_run: bool, **params: Any) -> None:
    """Run one sync cycle of ROOT to the bucket.

    New and changed files are uploaded, unchanged files are skipped and
    remote objects without a local file are deleted.

    Examples:
        bucketsync sync ./data -b my-bucket
        bucketsync sync ./data -b my-bucket --region eu-west-1 -j 8
        bucketsync sync ./data -b my-bucket --dry-run
        bucketsync sync ./data -b my-bucket -i secrets.env -i build/out.bin
    """
    out: OutputFormatter = ctx.obj["out"]
    config = build_config(out, ctx, **params)
    engine = build_engine(config, out)

    try:
        report = engine.run_cycle(dry_run=dry_run)
    except BucketSyncError as e:
        out.error(f"Sync failed: {e}")
        ctx.exit(1)
        return
    _finish(ctx, out, report)


@main.command()
@sync_options
@click.pass_context
def plan(ctx: Any, **params: Any) -> None:
    """Show what a sync of ROOT would upload and delete.

    Same as ``sync --dry-run``.
    """
    ctx.invoke(sync, dry_run=True, **params)


@main.command()
@sync_options
@click.argument("cron_expression", metavar="CRON")
@click.pass_context
def schedule(ctx: Any, cron_expression: str, **params: Any) -> None:
    """Sync ROOT now, then on the CRON schedule until interrupted.

    CRON is a standard 5-field crontab expression.

    Examples:
        bucketsync schedule ./data '0 * * * *' -b my-bucket
        bucketsync schedule ./data '*/15 * * * *' -b my-bucket -j 8
    """
    out: OutputFormatter = ctx.obj["out"]
    config = build_config(out, ctx, **params)
    engine = build_engine(config, out)

    try:
        scheduler = SyncScheduler(engine, cron_expression)
    except SyncConfigError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    out.info(f"Scheduler started with cron schedule: {cron_expression}")
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        out.warning("\nScheduler stopped by user")
        scheduler.stop()


if __name__ == "__main__":
    main()

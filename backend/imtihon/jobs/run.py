"""CLI entry point for job execution."""

import logging
import sys

import click

from imtihon.core.logging import setup_logging
from imtihon.jobs.expiry_sweeper import JOB_KEY as EXPIRE_SESSIONS, expire_overdue_sessions

logger = logging.getLogger(__name__)


@click.command()
@click.argument("job_key")
@click.option("--batch-size", type=int, default=None, help="Max sessions per run")
def run(job_key: str, batch_size: int | None):
    """
    Run a job once.

    Example:
        python -m imtihon.jobs.run expire_sessions
    """
    setup_logging()
    try:
        if job_key == EXPIRE_SESSIONS:
            result = expire_overdue_sessions(batch_size=batch_size)
            click.echo(f"Job completed: {result}")
        else:
            click.echo(f"Unknown job key: {job_key}", err=True)
            sys.exit(1)
    except Exception as e:
        logger.error(f"Job failed: {e}", exc_info=True)
        click.echo(f"Job failed: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    run()

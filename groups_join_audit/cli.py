"""Command line entry point for the Google Groups join policy audit."""

import logging
import sys
from typing import Callable, Optional

import typer
from dotenv import load_dotenv

from .audit import AuditSummary, audit_groups, build_settings_service
from .auth import get_credentials
from .config import DEFAULT_KEY_PATH, DEFAULT_TOKEN_PATH, Config
from .directory import build_directory_service, list_groups
from .exceptions import AuditError

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="groups-join-audit",
    help="Report Google Groups that anyone can join without an invitation",
    add_completion=False,
)


def configure_logging(verbose: bool = False):
    """Send log records to stderr so stdout only carries the report."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger('googleapiclient.discovery_cache').setLevel(logging.ERROR)
    # Request lines of the callback server carry the authorization code
    logging.getLogger('werkzeug').setLevel(logging.WARNING)


def run_audit(config: Config, report: Callable[[str], None] = typer.echo) -> AuditSummary:
    """
    Run the audit end to end.

    Args:
        config: Config for this run
        report: Called with the text of each finding

    Returns:
        AuditSummary: Counts and findings of the run

    Raises:
        AuditError: On any error that must stop the run
    """
    config.validate()

    credentials = get_credentials(config)
    directory_service = build_directory_service(credentials)
    settings_service = build_settings_service(credentials)

    groups = list_groups(directory_service, config.customer_id, page_size=config.page_size)
    summary = audit_groups(settings_service, groups, report=report)

    logger.info(
        f"Checked {summary.groups_checked} groups: "
        f"{len(summary.findings)} with a permissive join policy, "
        f"{summary.failures} could not be checked"
    )
    return summary


@app.command()
def main(
    customer_id: str = typer.Option(
        "", "--customer_id", envvar="GROUPS_AUDIT_CUSTOMER_ID",
        help="The customer ID to use.",
    ),
    key: str = typer.Option(
        DEFAULT_KEY_PATH, "--key", envvar="GROUPS_AUDIT_KEY",
        help="Path to the client secret JSON file.",
    ),
    token: str = typer.Option(
        DEFAULT_TOKEN_PATH, "--token", envvar="GROUPS_AUDIT_TOKEN",
        help="Path of the cached OAuth token.",
    ),
    key_secret: Optional[str] = typer.Option(
        None, "--key_secret", envvar="GROUPS_AUDIT_KEY_SECRET",
        help="Secret Manager secret holding the client secret JSON (replaces --key).",
    ),
    project: Optional[str] = typer.Option(
        None, "--project", envvar="GROUPS_AUDIT_PROJECT",
        help="GCP project of --key_secret.",
    ),
    auth_timeout: Optional[float] = typer.Option(
        None, "--auth_timeout", envvar="GROUPS_AUDIT_AUTH_TIMEOUT",
        help="Seconds to wait for the browser authorization (default: wait forever).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """Report groups whose whoCanJoin setting lets people join without an invitation."""
    configure_logging(verbose)

    config = Config(
        customer_id=customer_id,
        key_path=key,
        token_path=token,
        key_secret=key_secret,
        project_id=project,
        callback_timeout=auth_timeout,
    )

    try:
        run_audit(config)
    except AuditError as e:
        logger.debug("Audit aborted", exc_info=True)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None


def run():
    """Console script entry point."""
    # Values from a local .env file act as defaults for the option envvars
    load_dotenv()
    app()

"""``idflow`` command line.

The root callback turns the global flags into an
:class:`~idflow.output.OutputManager` and a ``ctx.obj`` dict that the
commands read the ``--profile`` override from. Commands live in
:mod:`idflow.commands`: the ``profile`` group manages tenant profiles and
the session commands drive the browser flows.

:func:`main` is the console script. Errors from the package end the process
with their own exit code; anything unexpected leaves a traceback under
``<data dir>/logs`` and exits with 1.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from idflow import __version__
from idflow.exit_codes import EXIT_GENERIC_FAILURE

EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="idflow",
    help="Silent login, PKCE and session checks against a hosted identity provider.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

from idflow.commands.profile import profile_app  # noqa: E402
from idflow.commands.session import (  # noqa: E402
    callback_command,
    exchange_command,
    login_command,
    logout_command,
    sso_data_command,
)

app.add_typer(profile_app, name="profile", help="Add, inspect and select tenant profiles.")
for _name, _command in (
    ("sso-data", sso_data_command),
    ("login", login_command),
    ("callback", callback_command),
    ("exchange", exchange_command),
    ("logout", logout_command),
):
    app.command(_name)(_command)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"idflow {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Print the idflow version.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Run against this profile instead of the default."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON."),
    plain_output: bool = typer.Option(
        False, "--plain", help="Print results as tab-separated text."
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Never use colour."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only print results, warnings and errors."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Trace redirects and HTTP calls on stderr."
    ),
) -> None:
    from idflow.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.obj = {"profile": profile, "verbose": verbose}


def _cancel(*_: Any) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_INTERRUPTED)


def _write_crash_log(exc: BaseException) -> Path:
    from idflow.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        encoding="utf-8",
    )
    return log_path


def main() -> None:
    """Console script entry point. Always ends in :class:`SystemExit`."""
    from idflow.exceptions import IdflowError
    from idflow.output import error

    signal.signal(signal.SIGINT, _cancel)
    try:
        app()
    except KeyboardInterrupt:
        _cancel()
    except IdflowError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error. Traceback written to {_write_crash_log(exc)}")
        sys.exit(EXIT_GENERIC_FAILURE)

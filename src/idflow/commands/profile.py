"""Profile commands -- manage identity-provider profiles.

Provides the ``idflow profile`` sub-command group. A profile binds a tenant
domain to an OAuth client identifier and records whether the tenant keeps
an SSO session. Profiles are stored as JSON files in the profiles directory
(see :func:`~idflow.config.get_profiles_dir`).

Typical workflow::

    idflow profile add acme --domain acme.example.net --client-id abc --sso --default
    idflow profile list
    idflow login
"""

from __future__ import annotations

import typer

from idflow.output import error, format_response, info, print_table, success, suggest


profile_app = typer.Typer(no_args_is_help=True)


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    domain: str = typer.Option(
        ..., "--domain", "-d", help="Identity provider host, e.g. tenant.example.net."
    ),
    client_id: str = typer.Option(
        ..., "--client-id", "-c", help="OAuth client identifier."
    ),
    sso: bool = typer.Option(
        False, "--sso/--no-sso", help="Whether the tenant keeps an SSO session."
    ),
    make_default: bool = typer.Option(
        False, "--default", help="Make this the default profile."
    ),
) -> None:
    """Create or replace a profile.

    Example::

        idflow profile add acme --domain acme.example.net --client-id abc --sso
    """
    from idflow.config import (
        load_global_config,
        profile_exists,
        save_global_config,
        save_profile,
    )
    from idflow.models import Profile

    replaced = profile_exists(name)
    save_profile(Profile(name=name, domain=domain, client_id=client_id, sso=sso))

    if make_default:
        config = load_global_config()
        config.default_profile = name
        save_global_config(config)

    verb = "Updated" if replaced else "Created"
    success(f'{verb} profile "{name}".')
    if not make_default:
        suggest(f"Make it the default: idflow profile use {name}")


@profile_app.command("list")
def profile_list() -> None:
    """List all profiles, marking the default one."""
    from idflow.config import list_profiles, load_global_config, load_profile

    names = list_profiles()
    if not names:
        info("No profiles configured.")
        suggest("Create one: idflow profile add NAME --domain D --client-id C")
        return

    default = load_global_config().default_profile
    rows = []
    for name in names:
        profile = load_profile(name)
        rows.append(
            [
                f"{name} *" if name == default else name,
                profile.domain,
                profile.client_id,
                "yes" if profile.sso else "no",
            ]
        )
    print_table(["Name", "Domain", "Client ID", "SSO"], rows, title="Profiles")


@profile_app.command("show")
def profile_show(
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Show a profile's full configuration."""
    from idflow.config import load_profile
    from idflow.exceptions import ConfigError

    try:
        profile = load_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None

    format_response(profile.model_dump(mode="json"))


@profile_app.command("remove")
def profile_remove(
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Delete a profile, clearing it as default if needed."""
    from idflow.config import delete_profile, load_global_config, save_global_config
    from idflow.exceptions import ConfigError

    try:
        delete_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None

    config = load_global_config()
    if config.default_profile == name:
        config.default_profile = None
        save_global_config(config)

    success(f'Removed profile "{name}".')


@profile_app.command("use")
def profile_use(
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Set the default profile."""
    from idflow.config import load_global_config, profile_exists, save_global_config

    if not profile_exists(name):
        error(f"Profile '{name}' not found.")
        raise typer.Exit(code=2)

    config = load_global_config()
    config.default_profile = name
    save_global_config(config)
    success(f'Default profile set to "{name}".')

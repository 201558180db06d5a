"""Built-in CLI sub-commands for idflow.

* :mod:`~idflow.commands.profile` -- create, list, show, remove and select
  identity-provider profiles.
* :mod:`~idflow.commands.session` -- ``sso-data``, ``login``, ``callback``,
  ``exchange`` and ``logout``.

``profile`` is exported as a :class:`typer.Typer` sub-application; the
session commands are plain callback functions registered directly on the
root app.
"""

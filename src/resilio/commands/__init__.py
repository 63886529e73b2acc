"""Built-in CLI sub-commands for resilio.

* :mod:`~resilio.commands.request` -- ``get`` and ``configs``, cached and
  retried reads against the console API.
* :mod:`~resilio.commands.cache` -- inspect and clear the response cache.
* :mod:`~resilio.commands.config` -- view and modify global settings.

Single commands are plain callbacks registered on the root app; command
groups export a :class:`typer.Typer` sub-application.
"""

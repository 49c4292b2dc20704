"""Built-in CLI commands for credcache.

Each module exposes Typer command functions or sub-apps that
:func:`credcache.app.register_commands` attaches to the root application.
"""

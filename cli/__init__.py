"""Command line client for the sensor telemetry server and relay.

The Typer application is ``cli.app.app``. It is not re-exported here, so
``cli.app`` keeps resolving to the module and tests can patch names on it.
"""

__all__: list[str] = []

from pathlib import Path

import click

from auction_deployment.types import Intent

intent_option = click.option(
    "--intent",
    "-i",
    help="What to do: bootstrap a fresh deployment or upgrade with one strategy.",
    type=click.Choice([intent.value for intent in Intent]),
    callback=lambda ctx, param, value: Intent(value),
    required=True,
)

params_filepath_option = click.option(
    "--params-filepath",
    "-p",
    help="Deployment params YAML; defaults to the one bundled for the network.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

ledger_filepath_option = click.option(
    "--ledger-filepath",
    "-l",
    help="Ledger JSON; defaults to .cache/<network>/ under the current directory.",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign every transaction without asking for confirmation.",
    is_flag=True,
    default=False,
)

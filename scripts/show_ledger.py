#!/usr/bin/python3

import sys

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from auction_deployment.exceptions import DeploymentError
from auction_deployment.options import ledger_filepath_option, params_filepath_option
from auction_deployment.outcomes import exit_code_for_error
from auction_deployment.utils import describe_record, ledger_store_for, load_params


@click.command(cls=ConnectedProviderCommand, name="show-ledger")
@network_option(required=True)
@params_filepath_option
@ledger_filepath_option
def cli(network, params_filepath, ledger_filepath):
    """Print the deployment ledger of the connected network."""
    network_name = networks.provider.network.name
    try:
        params = load_params(network=network_name, params_filepath=params_filepath)
        store = ledger_store_for(network_name, params, ledger_filepath)
        record = store.load()
    except DeploymentError as e:
        click.secho(f"{type(e).__name__}: {e}", fg="red")
        sys.exit(exit_code_for_error(e))

    click.secho(f"\n{store.filepath}", fg="green")
    for field, value in describe_record(record):
        click.secho(f"    {field:<60} {value}", fg="cyan")


if __name__ == "__main__":
    cli()

#!/usr/bin/python3

import sys

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from auction_deployment.exceptions import DeploymentError
from auction_deployment.networks import ApeNetwork
from auction_deployment.options import ledger_filepath_option, params_filepath_option
from auction_deployment.outcomes import (
    EXIT_STALE_LEDGER,
    EXIT_SUCCESS,
    EXIT_VERIFICATION_FAILED,
    exit_code_for_error,
)
from auction_deployment.probe import LivenessProber
from auction_deployment.utils import ledger_store_for, load_params
from auction_deployment.verification import verify


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_filepath_option
@ledger_filepath_option
def cli(network, params_filepath, ledger_filepath):
    """Compare the ledger against the chain without sending any transaction."""
    network_name = networks.provider.network.name
    try:
        params = load_params(network=network_name, params_filepath=params_filepath)
        record = ledger_store_for(network_name, params, ledger_filepath).load()
    except DeploymentError as e:
        click.secho(f"{type(e).__name__}: {e}", fg="red")
        sys.exit(exit_code_for_error(e))

    chain = ApeNetwork(named_accounts=params.named_accounts)

    click.secho("\nLiveness", fg="green")
    probes = LivenessProber(chain).probe_record(record)
    for probe in probes:
        status, colour = ("ok", "cyan") if probe.has_code else ("NO CODE", "red")
        click.secho(f"    {probe.label:<60} {probe.address} {status}", fg=colour)
    if not all(probe.has_code for probe in probes):
        click.secho("Ledger is stale; skipping on-chain comparison.", fg="red")
        sys.exit(EXIT_STALE_LEDGER)

    click.secho("\nOn-chain comparison", fg="green")
    discrepancies = verify(chain, record, factory_artifact=params.factory.artifact)
    for discrepancy in discrepancies:
        click.secho(f"    {discrepancy}", fg="red")
    if discrepancies:
        click.secho(f"{len(discrepancies)} discrepancies found.", fg="red")
        sys.exit(EXIT_VERIFICATION_FAILED)

    click.secho("Ledger matches on-chain state.", fg="green")
    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    cli()

#!/usr/bin/python3

# Usage:
#  > ape run upgrade_auction --network ethereum:local:test --intent bootstrap
#  > ape run upgrade_auction --network ethereum:local:test --intent in-place

import sys

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from auction_deployment.exceptions import DeploymentError
from auction_deployment.networks import ApeNetwork
from auction_deployment.options import (
    autosign_option,
    intent_option,
    ledger_filepath_option,
    params_filepath_option,
)
from auction_deployment.orchestrator import Orchestrator, execute
from auction_deployment.outcomes import BatchUpgraded, exit_code_for_error
from auction_deployment.utils import ledger_store_for, load_params


def _report_batch(outcome: BatchUpgraded) -> None:
    for instance in outcome.upgraded:
        click.secho(f"    upgraded      {instance}", fg="green")
    if outcome.failure:
        click.secho(f"    failed        {outcome.failure}", fg="red")
    for instance in outcome.not_attempted:
        click.secho(f"    not attempted {instance}", fg="yellow")


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@intent_option
@params_filepath_option
@ledger_filepath_option
@autosign_option
def cli(network, intent, params_filepath, ledger_filepath, autosign):
    """Deploy the NFT auction system, or upgrade it with the chosen strategy."""
    network_name = networks.provider.network.name
    try:
        params = load_params(network=network_name, params_filepath=params_filepath)
        store = ledger_store_for(
            network=network_name, params=params, ledger_filepath=ledger_filepath
        )
        orchestrator = Orchestrator(
            network=ApeNetwork(named_accounts=params.named_accounts),
            params=params,
            autosign=autosign,
        )
        outcome = execute(intent=intent, store=store, orchestrator=orchestrator)
    except DeploymentError as e:
        click.secho(f"{type(e).__name__}: {e}", fg="red")
        sys.exit(exit_code_for_error(e))

    click.secho(outcome.summary(), fg="green" if outcome.exit_code == 0 else "yellow")
    if isinstance(outcome, BatchUpgraded):
        _report_batch(outcome)
    sys.exit(outcome.exit_code)


if __name__ == "__main__":
    cli()

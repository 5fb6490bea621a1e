from pathlib import Path
from typing import List, Optional, Tuple

from auction_deployment.ledger import LedgerStore
from auction_deployment.params import DeploymentParameters
from auction_deployment.types import DeploymentRecord


def load_params(network: str, params_filepath: Optional[Path] = None) -> DeploymentParameters:
    """Explicit params file if given, else the one bundled for the network."""
    if params_filepath:
        return DeploymentParameters.from_yaml(params_filepath)
    return DeploymentParameters.for_network(network)


def ledger_store_for(
    network: str, params: DeploymentParameters, ledger_filepath: Optional[Path] = None
) -> LedgerStore:
    if ledger_filepath:
        return LedgerStore(ledger_filepath)
    return LedgerStore.for_network(network=network, config=params.config)


def describe_record(record: DeploymentRecord) -> List[Tuple[str, str]]:
    """Flattens a record into (field, value) rows for display."""
    auction = record.auction
    rows = [
        ("network", f"{record.network} (chain {record.chain_id})"),
        ("deployedAt", record.deployed_at),
    ]
    for name, contract in record.base_contracts.items():
        rows.append((f"{name}.address", contract.address))
        for key, value in contract.metadata.items():
            rows.append((f"{name}.{key}", str(value)))
    rows.extend(
        [
            ("auction.proxyAddress", auction.proxy_address),
            ("auction.implementation", auction.implementation),
            ("auction.proxyImplementation", auction.proxy_implementation),
            ("auction.upgraded", str(auction.upgraded)),
            ("auction.upgradeTime", auction.upgrade_time or "-"),
            ("auction.strategy", auction.strategy.value if auction.strategy else "-"),
            ("auctionFactory.address", record.factory.address),
        ]
    )
    for asset, address in record.price_feeds.items():
        rows.append((f"priceFeed.{asset}", address))
    for instance, implementation in record.instances.items():
        rows.append((f"instances.{instance}", implementation))
    for role, address in record.accounts.items():
        rows.append((f"accounts.{role}", address))
    return rows

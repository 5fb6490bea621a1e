from typing import Any, List

from eth_utils import to_checksum_address

from auction_deployment.constants import AUCTION_FACTORY, FACTORY_GET_IMPLEMENTATION
from auction_deployment.exceptions import VerificationFailed
from auction_deployment.interfaces import Network
from auction_deployment.types import DeploymentRecord, Discrepancy


def _same_address(a: Any, b: Any) -> bool:
    try:
        return to_checksum_address(a) == to_checksum_address(b)
    except (TypeError, ValueError):
        return False


def verify(
    network: Network, record: DeploymentRecord, factory_artifact: str = AUCTION_FACTORY
) -> List[Discrepancy]:
    """
    Compares every address the ledger claims against a fresh on-chain read.

    All mismatches are collected, so one report shows the complete picture:
      - the factory's implementation pointer against `auction.implementation`
      - the auction proxy's ERC-1967 implementation against `auction.proxyImplementation`
      - each recorded factory instance's implementation
      - each recorded account role against the network's current signer
    """
    discrepancies = list()

    def compare(field: str, expected: Any, actual: Any) -> None:
        if not _same_address(expected, actual):
            discrepancies.append(Discrepancy(field=field, expected=expected, actual=actual))

    factory_implementation = network.read_contract(
        factory_artifact, record.factory.address, FACTORY_GET_IMPLEMENTATION
    )
    compare("auctionFactory.implementation", record.auction.implementation, factory_implementation)

    proxy_implementation = network.get_implementation_address(record.auction.proxy_address)
    compare("auction.proxyImplementation", record.auction.proxy_implementation, proxy_implementation)

    for instance, implementation in record.instances.items():
        compare(
            f"instances.{instance}",
            implementation,
            network.get_implementation_address(instance),
        )

    for role, address in record.accounts.items():
        compare(f"accounts.{role}", address, network.get_account(role))

    return discrepancies


def verify_or_raise(
    network: Network, record: DeploymentRecord, factory_artifact: str = AUCTION_FACTORY
) -> None:
    discrepancies = verify(network=network, record=record, factory_artifact=factory_artifact)
    if discrepancies:
        raise VerificationFailed(discrepancies)
    print("(i) Verification passed: ledger matches on-chain state")

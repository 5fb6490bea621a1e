from typing import Callable, List, Tuple

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from auction_deployment.constants import AUCTION_FACTORY, FACTORY_GET_IMPLEMENTATION
from auction_deployment.interfaces import Network
from auction_deployment.types import (
    Degraded,
    DeploymentRecord,
    Fail,
    Ok,
    Probe,
    ReadResult,
)


class LivenessProber:
    """Checks that addresses recorded in a ledger still hold contract code."""

    def __init__(self, network: Network):
        self.network = network

    def probe(self, address: ChecksumAddress, label: str = "") -> Probe:
        code = self.network.get_code(address)
        return Probe(label=label or address, address=address, has_code=bool(code))

    def probe_record(self, record: DeploymentRecord) -> List[Probe]:
        return [self.probe(item.address, label=item.label) for item in record.contract_addresses()]

    def dead_addresses(self, record: DeploymentRecord) -> List[Probe]:
        """Recorded contracts with no code, factory and proxy first."""
        return [probe for probe in self.probe_record(record) if not probe.has_code]


#
# Reading the current implementation
#

ReadStrategy = Tuple[str, Callable[[], ChecksumAddress]]

FACTORY_POINTER = "factory-pointer"
PROXY_SLOT = "proxy-slot"


def read_with_fallbacks(strategies: List[ReadStrategy]) -> ReadResult:
    """
    Tries each named read in order. The first strategy succeeding gives `Ok`,
    a later one gives `Degraded` carrying the earlier failures, none gives `Fail`.
    """
    failures = list()
    for position, (name, read) in enumerate(strategies):
        try:
            value = to_checksum_address(read())
        except Exception as e:
            failures.append(f"{name}: {e!r}")
            continue
        if position == 0:
            return Ok(value=value, strategy=name)
        return Degraded(value=value, strategy=name, reason="; ".join(failures))
    return Fail(reason="; ".join(failures) or "no read strategies")


def read_current_implementation(
    network: Network, record: DeploymentRecord, factory_artifact: str = AUCTION_FACTORY
) -> ReadResult:
    """Implementation handed to new auctions by the factory, else the one behind the proxy."""
    strategies = [
        (
            FACTORY_POINTER,
            lambda: network.read_contract(
                factory_artifact, record.factory.address, FACTORY_GET_IMPLEMENTATION
            ),
        ),
        (
            PROXY_SLOT,
            lambda: network.get_implementation_address(record.auction.proxy_address),
        ),
    ]
    return read_with_fallbacks(strategies)

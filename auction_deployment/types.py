from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Union

from eth_typing import ChecksumAddress

ContractName = str
RoleName = str


class Intent(Enum):
    """What the operator asks a run to do."""

    BOOTSTRAP = "bootstrap"
    IN_PLACE_UPGRADE = "in-place"
    SWAP_IMPLEMENTATION = "swap"
    BATCH_REPOINT = "batch"


class Receipt(NamedTuple):
    txn_hash: str
    block_number: int
    sender: ChecksumAddress


class BaseContract(NamedTuple):
    address: ChecksumAddress
    metadata: Dict[str, Any]


class AuctionRecord(NamedTuple):
    implementation: ChecksumAddress
    proxy_address: ChecksumAddress
    proxy_implementation: ChecksumAddress
    upgraded: bool = False
    upgrade_time: Optional[str] = None
    strategy: Optional[Intent] = None


class FactoryRecord(NamedTuple):
    address: ChecksumAddress


class DeploymentRecord(NamedTuple):
    """Addresses and upgrade status of one auction deployment on one network."""

    version: int
    network: str
    chain_id: int
    base_contracts: Dict[ContractName, BaseContract]
    auction: AuctionRecord
    factory: FactoryRecord
    price_feeds: Dict[str, ChecksumAddress]
    accounts: Dict[RoleName, ChecksumAddress]
    instances: Dict[ChecksumAddress, ChecksumAddress]
    deployed_at: str

    def contract_addresses(self) -> List["Labelled"]:
        """Every recorded address that is expected to hold contract code."""
        labelled = [
            Labelled("auctionFactory.address", self.factory.address),
            Labelled("auction.proxyAddress", self.auction.proxy_address),
            Labelled("auction.implementation", self.auction.implementation),
            Labelled("auction.proxyImplementation", self.auction.proxy_implementation),
        ]
        for name, contract in self.base_contracts.items():
            labelled.append(Labelled(f"{name}.address", contract.address))
        for asset, address in self.price_feeds.items():
            labelled.append(Labelled(f"priceFeed.{asset}", address))
        for instance in self.instances:
            labelled.append(Labelled(f"instances.{instance}", instance))
        return labelled


class Labelled(NamedTuple):
    label: str
    address: ChecksumAddress


class Probe(NamedTuple):
    label: str
    address: ChecksumAddress
    has_code: bool


class Discrepancy(NamedTuple):
    field: str
    expected: Any
    actual: Any

    def __str__(self) -> str:
        return f"{self.field}: ledger has {self.expected}, chain has {self.actual}"


#
# Tagged results of reads that have fallback strategies
#


class Ok(NamedTuple):
    value: ChecksumAddress
    strategy: str


class Degraded(NamedTuple):
    value: ChecksumAddress
    strategy: str
    reason: str


class Fail(NamedTuple):
    reason: str


ReadResult = Union[Ok, Degraded, Fail]

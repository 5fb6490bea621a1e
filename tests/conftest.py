from itertools import count
from typing import Any, Dict, List, NamedTuple, Sequence, Tuple

import pytest
from eth_utils import to_checksum_address

from auction_deployment.constants import (
    AUCTION_FACTORY,
    FACTORY_GET_IMPLEMENTATION,
    FACTORY_SET_IMPLEMENTATION,
    LOCAL,
    NAMED_ACCOUNTS,
    PROXY_CONTRACT,
    SET_PRICE_FEED,
    UUPS_UPGRADE,
)
from auction_deployment.interfaces import Network
from auction_deployment.ledger import LedgerStore
from auction_deployment.orchestrator import Orchestrator
from auction_deployment.params import DeploymentParameters
from auction_deployment.types import Receipt

CHAIN_ID = 31337
DEPLOYED_AT = "2026-01-01T00:00:00+00:00"
UPGRADED_AT = "2026-01-02T00:00:00+00:00"
CONTRACT_CODE = bytes.fromhex("6080604052")


class Transaction(NamedTuple):
    kind: str
    artifact: str
    address: str
    method: str
    args: Tuple[Any, ...]
    signer: str


class FakeChain(Network):
    """
    In-memory chain holding just enough state for the auction contracts:
    which addresses have code, proxy implementations, and factory state.
    """

    def __init__(self, name: str = LOCAL, chain_id: int = CHAIN_ID):
        self.name = name
        self.chain_id = chain_id
        self._nonce = count(1)
        self.accounts = {role: self._new_address() for role in NAMED_ACCOUNTS}
        self.code: Dict[str, str] = dict()  # address -> artifact
        self.proxies: Dict[str, str] = dict()  # proxy -> implementation
        self.factories: Dict[str, Dict[str, Any]] = dict()
        self.price_feeds: Dict[str, Dict[str, str]] = dict()
        self.transactions: List[Transaction] = list()
        self.failing_upgrades = set()
        self.failing_reads = set()
        self.flaky_implementation_reads = set()

    def _new_address(self) -> str:
        return to_checksum_address(f"0x{next(self._nonce):040x}")

    def _create(self, artifact: str) -> str:
        address = self._new_address()
        self.code[address] = artifact
        return address

    def _record(self, kind, artifact, address, method, args, signer) -> Receipt:
        self.transactions.append(
            Transaction(kind, artifact, address, method, tuple(args), signer)
        )
        return Receipt(
            txn_hash=f"0x{len(self.transactions):064x}",
            block_number=len(self.transactions),
            sender=self.accounts[signer],
        )

    #
    # Network
    #

    def get_code(self, address) -> bytes:
        return CONTRACT_CODE if address in self.code else b""

    def get_account(self, role) -> str:
        try:
            return self.accounts[role]
        except KeyError:
            raise ValueError(f"No account configured for role '{role}'")

    def deploy_contract(self, artifact: str, args: Sequence[Any], signer: str) -> str:
        address = self._create(artifact)
        self._record("deploy", artifact, address, "constructor", args, signer)
        return address

    def deploy_proxy(self, artifact: str, initializer: str, args: Sequence[Any], signer: str) -> str:
        implementation = self._create(artifact)
        proxy = self._create(PROXY_CONTRACT)
        self.proxies[proxy] = implementation
        if artifact == AUCTION_FACTORY:
            self.factories[proxy] = {"implementation": args[0], "instances": list()}
        self._record("deploy_proxy", artifact, proxy, initializer, args, signer)
        return proxy

    def call_contract(self, artifact, address, method, args, signer, value=0) -> Receipt:
        if address not in self.code:
            raise ValueError(f"No contract at {address}")
        if method == UUPS_UPGRADE:
            if address in self.failing_upgrades:
                raise RuntimeError(f"execution reverted: upgrade of {address}")
            self.proxies[address] = args[0]
        elif method == FACTORY_SET_IMPLEMENTATION:
            self.factories[address]["implementation"] = args[0]
        elif method == SET_PRICE_FEED:
            asset, feed = args
            self.price_feeds.setdefault(address, dict())[asset] = feed
        return self._record("call", artifact, address, method, args, signer)

    def read_contract(self, artifact, address, method, *args) -> Any:
        if method in self.failing_reads:
            raise RuntimeError(f"call to {method} reverted")
        if method == FACTORY_GET_IMPLEMENTATION:
            return self.factories[address]["implementation"]
        raise ValueError(f"Unsupported read {artifact}.{method}")

    def upgrade_proxy(self, proxy_address, artifact, signer) -> str:
        implementation = self._create(artifact)
        self.proxies[proxy_address] = implementation
        self._record("upgrade_proxy", artifact, proxy_address, UUPS_UPGRADE, (implementation,), signer)
        return implementation

    def get_implementation_address(self, proxy_address) -> str:
        if proxy_address in self.flaky_implementation_reads:
            self.flaky_implementation_reads.discard(proxy_address)
            raise RuntimeError(f"timed out reading implementation of {proxy_address}")
        try:
            return self.proxies[proxy_address]
        except KeyError:
            raise ValueError(f"Implementation slot for contract at {proxy_address} is empty.")

    def list_instances(self, factory_address) -> List[str]:
        return list(self.factories[factory_address]["instances"])

    #
    # Out-of-band changes
    #

    def create_auction(self, factory_address: str) -> str:
        """What the factory does for a new auction: a proxy to its current implementation."""
        proxy = self._create(PROXY_CONTRACT)
        self.proxies[proxy] = self.factories[factory_address]["implementation"]
        self.factories[factory_address]["instances"].append(proxy)
        return proxy

    def reset(self) -> None:
        """A restarted local node: every contract is gone."""
        self.code.clear()
        self.proxies.clear()
        self.factories.clear()


class Clock:
    def __init__(self, now: str = DEPLOYED_AT):
        self.now = now

    def __call__(self) -> str:
        return self.now


@pytest.fixture
def fake_chain():
    return FakeChain()


@pytest.fixture
def params():
    return DeploymentParameters.for_network(LOCAL)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def orchestrator(fake_chain, params, clock):
    return Orchestrator(network=fake_chain, params=params, autosign=True, clock=clock)


@pytest.fixture
def store(tmp_path):
    return LedgerStore(tmp_path / LOCAL / "NFTAuction_deployment.json")

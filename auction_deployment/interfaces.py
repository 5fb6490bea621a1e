from abc import ABC, abstractmethod
from typing import Any, List, Sequence

from eth_typing import ChecksumAddress

from auction_deployment.types import ContractName, Receipt, RoleName


class Network(ABC):
    """
    The chain as seen by the orchestrator.

    Signers are named account roles (e.g. "deployer"); implementations map
    them to their own account objects. Every transacting call blocks until the
    transaction is included.
    """

    name: str
    chain_id: int

    @abstractmethod
    def get_code(self, address: ChecksumAddress) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def get_account(self, role: RoleName) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def deploy_contract(
        self, artifact: ContractName, args: Sequence[Any], signer: RoleName
    ) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def deploy_proxy(
        self,
        artifact: ContractName,
        initializer: str,
        args: Sequence[Any],
        signer: RoleName,
    ) -> ChecksumAddress:
        """Deploys a UUPS proxy for a fresh implementation and returns the proxy address."""
        raise NotImplementedError

    @abstractmethod
    def call_contract(
        self,
        artifact: ContractName,
        address: ChecksumAddress,
        method: str,
        args: Sequence[Any],
        signer: RoleName,
        value: int = 0,
    ) -> Receipt:
        raise NotImplementedError

    @abstractmethod
    def read_contract(
        self, artifact: ContractName, address: ChecksumAddress, method: str, *args
    ) -> Any:
        raise NotImplementedError

    @abstractmethod
    def upgrade_proxy(
        self, proxy_address: ChecksumAddress, artifact: ContractName, signer: RoleName
    ) -> ChecksumAddress:
        """Upgrades a UUPS proxy to a new implementation of `artifact` and returns it."""
        raise NotImplementedError

    @abstractmethod
    def get_implementation_address(self, proxy_address: ChecksumAddress) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def list_instances(self, factory_address: ChecksumAddress) -> List[ChecksumAddress]:
        raise NotImplementedError

import typing
from typing import Any, Dict, List, Sequence, Union

from ape import accounts, chain, networks, project
from ape.api import AccountAPI
from ape.contracts import ContractContainer
from ape.utils import EMPTY_BYTES32
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import MethodABI
from web3.auto import w3

from auction_deployment.constants import (
    AUCTION_FACTORY,
    EIP1967_IMPLEMENTATION_SLOT,
    FACTORY_LIST_INSTANCES,
    LOCAL_NETWORKS,
    OZ_DEPENDENCY_NAME,
    OZ_DEPENDENCY_VERSION,
    PROXY_CONTRACT,
    UUPS_UPGRADE,
)
from auction_deployment.interfaces import Network
from auction_deployment.types import Receipt, RoleName


def is_local_network() -> bool:
    return networks.provider.network.name in LOCAL_NETWORKS


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def get_proxy_container() -> ContractContainer:
    oz_dependency = project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
    return getattr(oz_dependency, PROXY_CONTRACT)


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _load_account(reference: Union[int, str]) -> AccountAPI:
    if isinstance(reference, int):
        if not is_local_network():
            raise ValueError("Account indices are only supported on local networks")
        return accounts.test_accounts[reference]
    return accounts.load(reference)


class ApeNetwork(Network):
    """The connected ape provider; signers are resolved from named account roles."""

    def __init__(self, named_accounts: Dict[RoleName, Union[int, str]]):
        self._accounts = {role: _load_account(ref) for role, ref in named_accounts.items()}

    @property
    def name(self) -> str:
        return networks.provider.network.name

    @property
    def chain_id(self) -> int:
        return networks.provider.network.chain_id

    def _signer(self, role: RoleName) -> AccountAPI:
        try:
            return self._accounts[role]
        except KeyError:
            raise ValueError(f"No account configured for role '{role}'")

    def get_code(self, address: ChecksumAddress) -> bytes:
        return bytes(chain.provider.get_code(address))

    def get_account(self, role: RoleName) -> ChecksumAddress:
        return to_checksum_address(self._signer(role).address)

    def deploy_contract(
        self, artifact: str, args: Sequence[Any], signer: RoleName
    ) -> ChecksumAddress:
        container = get_contract_container(artifact)
        instance = self._signer(signer).deploy(container, *args)
        return to_checksum_address(instance.address)

    def deploy_proxy(
        self, artifact: str, initializer: str, args: Sequence[Any], signer: RoleName
    ) -> ChecksumAddress:
        account = self._signer(signer)
        implementation = account.deploy(get_contract_container(artifact))
        initializer_handler = getattr(implementation, initializer)
        _validate_method_args(method_abis=initializer_handler.abis, args=args)
        data = initializer_handler.encode_input(*args)
        proxy = account.deploy(get_proxy_container(), implementation.address, data)
        return to_checksum_address(proxy.address)

    def call_contract(
        self,
        artifact: str,
        address: ChecksumAddress,
        method: str,
        args: Sequence[Any],
        signer: RoleName,
        value: int = 0,
    ) -> Receipt:
        instance = get_contract_container(artifact).at(address)
        handler = getattr(instance, method)
        _validate_method_args(method_abis=handler.abis, args=args)
        receipt = handler(*args, sender=self._signer(signer), value=value)
        return Receipt(
            txn_hash=str(receipt.txn_hash),
            block_number=receipt.block_number,
            sender=to_checksum_address(receipt.sender),
        )

    def read_contract(self, artifact: str, address: ChecksumAddress, method: str, *args) -> Any:
        instance = get_contract_container(artifact).at(address)
        result = getattr(instance, method)(*args)
        if isinstance(result, str) and result.startswith("0x") and len(result) == 42:
            return to_checksum_address(result)
        return result

    def upgrade_proxy(
        self, proxy_address: ChecksumAddress, artifact: str, signer: RoleName
    ) -> ChecksumAddress:
        account = self._signer(signer)
        container = get_contract_container(artifact)
        implementation = account.deploy(container)
        proxy = container.at(proxy_address)
        getattr(proxy, UUPS_UPGRADE)(implementation.address, b"", sender=account)
        return to_checksum_address(implementation.address)

    def get_implementation_address(self, proxy_address: ChecksumAddress) -> ChecksumAddress:
        implementation_slot = chain.provider.get_storage(
            proxy_address, EIP1967_IMPLEMENTATION_SLOT
        )
        if implementation_slot == EMPTY_BYTES32:
            raise ValueError(
                f"Implementation slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?"
            )
        return to_checksum_address(implementation_slot[-20:])

    def list_instances(self, factory_address: ChecksumAddress) -> List[ChecksumAddress]:
        factory = get_contract_container(AUCTION_FACTORY).at(factory_address)
        instances = getattr(factory, FACTORY_LIST_INSTANCES)()
        return [to_checksum_address(instance) for instance in instances]

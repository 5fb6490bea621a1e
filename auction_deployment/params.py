import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import yaml
from eth_typing import ChecksumAddress

from auction_deployment.confirm import _confirm_resolution, _continue
from auction_deployment.constants import (
    AUCTION_INITIALIZER,
    AUCTION_V2,
    CONSTRUCTOR_PARAMS_DIR,
    DEFAULT_PARAMS_FILENAME,
    DEPLOYER,
    FACTORY_INITIALIZER,
    LOCAL_NETWORKS,
    NAMED_ACCOUNTS,
)
from auction_deployment.exceptions import DeploymentConfigError
from auction_deployment.interfaces import Network
from auction_deployment.types import Receipt, RoleName


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        accounts: List[RoleName],
        constants: typing.Dict[str, Any] = None,
    ):
        self.contract_names = contract_names or list()
        self.accounts = accounts or list()
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, deployer: "Deployer") -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class NamedAccount(Variable):
    def __init__(self, role: RoleName, context: VariableContext):
        if role not in context.accounts:
            raise DeploymentConfigError(f"Account role '{role}' not found in deployment file.")
        self.role = role

    @classmethod
    def is_account(cls, value: str, context: VariableContext) -> bool:
        """Returns True if the variable names an account role."""
        return value in context.accounts

    def resolve(self, deployer: "Deployer") -> Any:
        return deployer.network.get_account(self.role)


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise DeploymentConfigError(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, deployer: "Deployer") -> Any:
        return self.constant_value


class ContractName(Variable):
    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise DeploymentConfigError(f"Contract name {contract_name} not found")
        self.contract_name = contract_name

    @classmethod
    def is_contract_name(cls, value: str, context: VariableContext) -> bool:
        """Returns True if the variable names a contract deployed in this run."""
        return value in context.contract_names

    def resolve(self, deployer: "Deployer") -> Any:
        """Resolves the address of a contract deployed earlier in this run (proxy if proxied)."""
        try:
            return deployer.deployments[self.contract_name]
        except KeyError:
            raise DeploymentConfigError(
                f"Contract {self.contract_name} is referenced before it is deployed"
            )


def _resolve_param(value: Any, deployer: "Deployer") -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, deployer) for v in value]

    if isinstance(value, Variable):
        return value.resolve(deployer)

    return value  # literally a value


def _resolve_params(parameters: OrderedDict, deployer: "Deployer") -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value, deployer)

    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable.strip(Variable.VARIABLE_PREFIX)
    if NamedAccount.is_account(variable, context):
        return NamedAccount(variable, context)
    elif ContractName.is_contract_name(variable, context):
        return ContractName(variable, context)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: Optional[Dict], variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in (values or dict()).items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _single_entry(entry: Any, what: str) -> Tuple[str, Any]:
    if isinstance(entry, str):
        return entry, dict()
    if not isinstance(entry, dict) or len(entry) != 1:
        raise DeploymentConfigError(f"Malformed {what} entry in deployment file.")
    name = list(entry.keys())[0]  # only one entry
    return name, entry[name] or dict()


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        name, _ = _single_entry(contract_info, what="contracts")
        contract_names.append(name)
    contract_names.append(config["auction"]["artifact"])
    contract_names.append(config["factory"]["artifact"])
    return contract_names


def validate_config(config: typing.Dict) -> None:
    """Checks that every section the bootstrap needs is present."""
    print("Validating parameters YAML...")

    deployment = config.get("deployment")
    if not deployment:
        raise DeploymentConfigError("deployment is not set in params file.")
    for field in ("network", "chain_id"):
        if not deployment.get(field):
            raise DeploymentConfigError(f"{field} is not set in params file.")

    accounts = config.get("accounts")
    if accounts and DEPLOYER not in accounts:
        raise DeploymentConfigError(f"accounts must define the '{DEPLOYER}' role.")

    if not config.get("contracts"):
        raise DeploymentConfigError("Params file missing 'contracts' field.")

    for section, fields in (
        ("auction", ("artifact",)),
        ("factory", ("artifact",)),
        ("price_feeds", ("artifact", "feeds")),
    ):
        section_config = config.get(section)
        if not section_config:
            raise DeploymentConfigError(f"Params file missing '{section}' field.")
        for field in fields:
            if not section_config.get(field):
                raise DeploymentConfigError(f"{section}.{field} is not set in params file.")


class ContractParameters(NamedTuple):
    name: str
    constructor: OrderedDict
    metadata: OrderedDict
    setup: List[Tuple[str, OrderedDict]]


class ProxyParameters(NamedTuple):
    artifact: str
    initializer: str
    args: OrderedDict


class PriceFeedParameters(NamedTuple):
    symbol: str
    asset: Any
    constructor: OrderedDict


class DeploymentParameters:
    """Bootstrap parameters for one network, read from a YAML params file."""

    def __init__(self, config: typing.Dict, path: Optional[Path] = None):
        validate_config(config)
        self.config = config
        self.path = path

        deployment = config["deployment"]
        self.network = deployment["network"]
        self.chain_id = int(deployment["chain_id"])
        self.named_accounts = OrderedDict(config.get("accounts") or NAMED_ACCOUNTS)
        self.constants = config.get("constants") or dict()

        context = VariableContext(
            contract_names=_get_contract_names(config),
            accounts=list(self.named_accounts),
            constants=self.constants,
        )

        self.contracts = list()
        for contract_info in config["contracts"]:
            name, contract_data = _single_entry(contract_info, what="contracts")
            setup = list()
            for call in contract_data.get("setup") or list():
                method, args = _single_entry(call, what=f"{name} setup")
                setup.append((method, _process_raw_values(args, context)))
            self.contracts.append(
                ContractParameters(
                    name=name,
                    constructor=_process_raw_values(contract_data.get("constructor"), context),
                    metadata=_process_raw_values(contract_data.get("metadata"), context),
                    setup=setup,
                )
            )

        auction = config["auction"]
        self.auction = ProxyParameters(
            artifact=auction["artifact"],
            initializer=auction.get("initializer", AUCTION_INITIALIZER),
            args=_process_raw_values(auction.get("args"), context),
        )
        self.upgrade_artifact = auction.get("upgrade_artifact", AUCTION_V2)

        factory = config["factory"]
        self.factory = ProxyParameters(
            artifact=factory["artifact"],
            initializer=factory.get("initializer", FACTORY_INITIALIZER),
            args=OrderedDict(),  # the auction implementation, known only once deployed
        )

        price_feeds = config["price_feeds"]
        self.price_feed_artifact = price_feeds["artifact"]
        self.price_feeds = list()
        for symbol, feed in price_feeds["feeds"].items():
            self.price_feeds.append(
                PriceFeedParameters(
                    symbol=symbol,
                    asset=_process_raw_value(feed["asset"], context),
                    constructor=_process_raw_values(feed.get("constructor"), context),
                )
            )

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploymentParameters":
        config = _load_yaml(filepath)
        if not isinstance(config, dict):
            raise DeploymentConfigError(f"Malformed params file {filepath}.")
        return cls(config=config, path=filepath)

    @classmethod
    def for_network(cls, network: str) -> "DeploymentParameters":
        filepath = CONSTRUCTOR_PARAMS_DIR / network / DEFAULT_PARAMS_FILENAME
        if not filepath.exists():
            raise DeploymentConfigError(f"No params file found for network '{network}'")
        return cls.from_yaml(filepath)

    def check_network(self, network: Network) -> None:
        """Live deployments must target the chain the params file was written for."""
        chain_mismatch = self.chain_id != network.chain_id
        live_deployment = network.name not in LOCAL_NETWORKS
        if chain_mismatch and live_deployment:
            raise DeploymentConfigError(
                f"chain_id in params file ({self.chain_id}) does not match "
                f"chain_id of current network ({network.chain_id})."
            )


class Transactor:
    """
    Represents a signer on a network plus annotated, confirmable transaction execution.
    """

    def __init__(self, network: Network, signer: RoleName = DEPLOYER, autosign: bool = False):
        self.network = network
        self.signer = signer
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign

    def get_address(self) -> ChecksumAddress:
        return self.network.get_account(self.signer)

    def checkpoint(self, step: str) -> None:
        """Gives the operator a chance to stop before the next step is started."""
        if not self._autosign:
            _continue(step)

    def transact(
        self, artifact: str, address: ChecksumAddress, method: str, *args, value: int = 0
    ) -> Receipt:
        base_message = f"\nTransacting {artifact}[{address[:10]}].{method}"
        if args:
            pretty_args = "\n\t".join(str(arg) for arg in args)
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        self.checkpoint(f"{artifact}.{method}")

        return self.network.call_contract(
            artifact, address, method, list(args), signer=self.signer, value=value
        )

    def deploy_implementation(self, artifact: str) -> ChecksumAddress:
        """Deploys a bare implementation contract, not behind a proxy."""
        self.checkpoint(f"deploy {artifact} implementation")
        address = self.network.deploy_contract(artifact, [], signer=self.signer)
        print(f"(i) {artifact} implementation deployed at {address}")
        return address

    def upgrade_proxy(self, proxy_address: ChecksumAddress, artifact: str) -> ChecksumAddress:
        self.checkpoint(f"upgrade proxy {proxy_address} to {artifact}")
        implementation = self.network.upgrade_proxy(proxy_address, artifact, signer=self.signer)
        print(f"(i) Proxy {proxy_address} upgraded to {artifact} at {implementation}")
        return implementation


class Deployer(Transactor):
    """
    Represents the deployer account plus the deployment parameters for
    the auction system, plus validated/annotated execution.
    """

    def __init__(self, network: Network, params: DeploymentParameters, autosign: bool = False):
        super().__init__(network=network, signer=DEPLOYER, autosign=autosign)
        params.check_network(network)
        self.params = params
        self.deployments: Dict[str, ChecksumAddress] = OrderedDict()
        self._print_deployment_info()

    def resolve(self, value: Any) -> Any:
        return _resolve_param(value, self)

    def resolve_params(self, parameters: OrderedDict) -> OrderedDict:
        return _resolve_params(parameters, self)

    def deploy(
        self, artifact: str, parameters: OrderedDict, name: Optional[str] = None
    ) -> ChecksumAddress:
        """Deploys a contract; `name` registers it for `$name` lookups."""
        resolved_params = self.resolve_params(parameters)
        if not self._autosign:
            _confirm_resolution(resolved_params, artifact)
        address = self.network.deploy_contract(
            artifact, list(resolved_params.values()), signer=self.signer
        )
        print(f"(i) {artifact} deployed at {address}")
        if name:
            self.deployments[name] = address
        return address

    def deploy_proxy(
        self, proxy: ProxyParameters, args: Optional[OrderedDict] = None
    ) -> ChecksumAddress:
        """Deploys `proxy.artifact` behind a UUPS proxy and registers the proxy address."""
        resolved_params = self.resolve_params(args if args is not None else proxy.args)
        if not self._autosign:
            _confirm_resolution(resolved_params, f"{proxy.artifact} (proxied)")
        print(f"\nDeploying UUPS proxy for {proxy.artifact}, initializer {proxy.initializer}.")
        proxy_address = self.network.deploy_proxy(
            proxy.artifact,
            proxy.initializer,
            list(resolved_params.values()),
            signer=self.signer,
        )
        self.deployments[proxy.artifact] = proxy_address
        return proxy_address

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_address()}",
            f"Config: {self.params.path}",
            f"Network: {self.network.name}",
            f"Chain ID: {self.network.chain_id}",
            sep="\n",
        )

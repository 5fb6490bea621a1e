from typing import Callable, Dict, NamedTuple, Optional, Sequence

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from auction_deployment.constants import (
    FACTORY_GET_IMPLEMENTATION,
    FACTORY_SET_IMPLEMENTATION,
    UUPS_UPGRADE,
)
from auction_deployment.exceptions import PostUpgradeVerificationFailed
from auction_deployment.params import DeploymentParameters, Transactor
from auction_deployment.types import DeploymentRecord, Intent


class InstanceFailure(NamedTuple):
    instance: ChecksumAddress
    error: Exception

    def __str__(self) -> str:
        return f"{self.instance}: {self.error!r}"


class StrategyResult(NamedTuple):
    implementation: ChecksumAddress
    proxy_implementation: ChecksumAddress
    instances: Dict[ChecksumAddress, ChecksumAddress]
    upgraded: Sequence[ChecksumAddress] = ()
    failure: Optional[InstanceFailure] = None
    not_attempted: Sequence[ChecksumAddress] = ()

    @property
    def complete(self) -> bool:
        return self.failure is None


def assert_implementation(source: str, expected: str, actual: str) -> None:
    if to_checksum_address(actual) != to_checksum_address(expected):
        raise PostUpgradeVerificationFailed(source=source, expected=expected, actual=actual)


def repoint_factory(
    transactor: Transactor,
    record: DeploymentRecord,
    params: DeploymentParameters,
    implementation: ChecksumAddress,
) -> None:
    """Points the factory at `implementation` for auctions it creates from now on."""
    factory_artifact, factory_address = params.factory.artifact, record.factory.address
    transactor.transact(
        factory_artifact, factory_address, FACTORY_SET_IMPLEMENTATION, implementation
    )
    actual = transactor.network.read_contract(
        factory_artifact, factory_address, FACTORY_GET_IMPLEMENTATION
    )
    assert_implementation("factory", expected=implementation, actual=actual)
    print(f"(i) Factory now hands out implementation {implementation}")


def upgrade_in_place(
    transactor: Transactor, record: DeploymentRecord, params: DeploymentParameters
) -> StrategyResult:
    """UUPS upgrade of the recorded auction proxy; its address stays the same."""
    proxy_address = record.auction.proxy_address
    print(f"\n--- Upgrading auction proxy {proxy_address} to {params.upgrade_artifact} ---")
    implementation = transactor.upgrade_proxy(proxy_address, params.upgrade_artifact)
    actual = transactor.network.get_implementation_address(proxy_address)
    assert_implementation("auction proxy", expected=implementation, actual=actual)

    repoint_factory(transactor, record, params, implementation)
    return StrategyResult(
        implementation=implementation,
        proxy_implementation=implementation,
        instances=dict(record.instances),
    )


def swap_implementation(
    transactor: Transactor, record: DeploymentRecord, params: DeploymentParameters
) -> StrategyResult:
    """New implementation for future auctions only; existing proxies are left alone."""
    print(f"\n--- Swapping factory implementation to a new {params.upgrade_artifact} ---")
    implementation = transactor.deploy_implementation(params.upgrade_artifact)
    repoint_factory(transactor, record, params, implementation)
    return StrategyResult(
        implementation=implementation,
        proxy_implementation=record.auction.proxy_implementation,
        instances=dict(record.instances),
    )


def batch_repoint(
    transactor: Transactor, record: DeploymentRecord, params: DeploymentParameters
) -> StrategyResult:
    """
    One new implementation, then every factory instance upgraded to it in order.

    The first failing instance stops the batch. Instances already upgraded stay
    upgraded; the result tells which ones succeeded, which failed and which were
    never attempted.
    """
    network = transactor.network
    print(f"\n--- Re-pointing factory instances to a new {params.upgrade_artifact} ---")
    implementation = transactor.deploy_implementation(params.upgrade_artifact)
    repoint_factory(transactor, record, params, implementation)

    instances = network.list_instances(record.factory.address)
    print(f"(i) Factory tracks {len(instances)} instance(s)")
    recorded = dict(record.instances)
    for instance in instances:
        recorded[instance] = network.get_implementation_address(instance)

    upgraded, failure, not_attempted = list(), None, list()
    for position, instance in enumerate(instances):
        try:
            transactor.transact(params.auction.artifact, instance, UUPS_UPGRADE, implementation, b"")
            actual = network.get_implementation_address(instance)
            recorded[instance] = actual
            assert_implementation(f"instance {instance}", expected=implementation, actual=actual)
        except Exception as e:
            print(f"! Upgrade of instance {instance} failed: {e!r}")
            failure = InstanceFailure(instance=instance, error=e)
            try:
                # the upgrade may have landed even though its confirmation failed
                recorded[instance] = network.get_implementation_address(instance)
            except Exception as read_error:
                print(f"! Could not re-read implementation of {instance}: {read_error!r}")
            not_attempted = list(instances[position + 1:])
            break
        upgraded.append(instance)
        print(f"(i) [{position + 1}/{len(instances)}] {instance} upgraded")

    return StrategyResult(
        implementation=implementation,
        proxy_implementation=record.auction.proxy_implementation,
        instances=recorded,
        upgraded=upgraded,
        failure=failure,
        not_attempted=not_attempted,
    )


Strategy = Callable[[Transactor, DeploymentRecord, DeploymentParameters], StrategyResult]

STRATEGIES: Dict[Intent, Strategy] = {
    Intent.IN_PLACE_UPGRADE: upgrade_in_place,
    Intent.SWAP_IMPLEMENTATION: swap_implementation,
    Intent.BATCH_REPOINT: batch_repoint,
}

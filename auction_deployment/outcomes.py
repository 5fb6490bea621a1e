"""
Results of a single orchestrator run.

Every outcome carries the `record` to persist, or None when the run changed
nothing, plus the process exit code the operator surface reports.
"""

from typing import NamedTuple, Optional, Sequence

from eth_typing import ChecksumAddress

from auction_deployment.exceptions import (
    CorruptLedger,
    DeploymentConfigError,
    DeploymentError,
    OperatorAbort,
    PostUpgradeVerificationFailed,
    StaleLedger,
    VerificationFailed,
)
from auction_deployment.strategies import InstanceFailure
from auction_deployment.types import DeploymentRecord, Discrepancy, Intent

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_STALE_LEDGER = 2
EXIT_VERIFICATION_FAILED = 3
EXIT_OPERATOR_ABORT = 4
EXIT_CONFIG_ERROR = 5


class Deployed(NamedTuple):
    record: DeploymentRecord

    @property
    def exit_code(self) -> int:
        return EXIT_SUCCESS

    def summary(self) -> str:
        return (
            f"Deployed auction system on {self.record.network}: "
            f"proxy {self.record.auction.proxy_address}, "
            f"implementation {self.record.auction.implementation}, "
            f"factory {self.record.factory.address}"
        )


class AlreadyDeployed(NamedTuple):
    network: str
    record: Optional[DeploymentRecord] = None

    @property
    def exit_code(self) -> int:
        return EXIT_SUCCESS

    def summary(self) -> str:
        return f"Auction system already deployed on {self.network}; nothing to do"


class NoOpAlreadyUpgraded(NamedTuple):
    implementation: ChecksumAddress
    record: Optional[DeploymentRecord] = None

    @property
    def exit_code(self) -> int:
        return EXIT_SUCCESS

    def summary(self) -> str:
        return f"Already upgraded to {self.implementation}; nothing to do"


class Upgraded(NamedTuple):
    strategy: Intent
    implementation: ChecksumAddress
    record: DeploymentRecord
    reconciled: Sequence[Discrepancy] = ()

    @property
    def exit_code(self) -> int:
        return EXIT_SUCCESS

    def summary(self) -> str:
        message = f"Upgraded ({self.strategy.value}) to implementation {self.implementation}"
        if self.reconciled:
            message += f", reconciling {len(self.reconciled)} ledger discrepancies"
        return message


class BatchUpgraded(NamedTuple):
    implementation: ChecksumAddress
    record: DeploymentRecord
    upgraded: Sequence[ChecksumAddress]
    failure: Optional[InstanceFailure] = None
    not_attempted: Sequence[ChecksumAddress] = ()
    reconciled: Sequence[Discrepancy] = ()

    @property
    def count(self) -> int:
        return len(self.upgraded)

    @property
    def complete(self) -> bool:
        return self.failure is None

    @property
    def partial_failure_at(self) -> Optional[ChecksumAddress]:
        return self.failure.instance if self.failure else None

    @property
    def exit_code(self) -> int:
        return EXIT_SUCCESS if self.complete else EXIT_FAILURE

    def summary(self) -> str:
        if self.complete:
            return f"Re-pointed {self.count} instance(s) to {self.implementation}"
        return (
            f"Batch stopped after {self.count} instance(s): {self.failure}. "
            f"{len(self.not_attempted)} instance(s) not attempted"
        )


def exit_code_for_error(error: DeploymentError) -> int:
    if isinstance(error, StaleLedger):
        return EXIT_STALE_LEDGER
    if isinstance(error, (VerificationFailed, PostUpgradeVerificationFailed)):
        return EXIT_VERIFICATION_FAILED
    if isinstance(error, OperatorAbort):
        return EXIT_OPERATOR_ABORT
    if isinstance(error, (DeploymentConfigError, CorruptLedger)):
        return EXIT_CONFIG_ERROR
    return EXIT_FAILURE

from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, NamedTuple, Optional, Sequence, Union

from eth_utils import to_checksum_address

from auction_deployment.bootstrap import bootstrap
from auction_deployment.constants import DEPLOYER
from auction_deployment.exceptions import (
    DeploymentConfigError,
    LedgerNotFound,
    StaleLedger,
    VerificationFailed,
)
from auction_deployment.interfaces import Network
from auction_deployment.ledger import LedgerStore
from auction_deployment.outcomes import (
    AlreadyDeployed,
    BatchUpgraded,
    Deployed,
    NoOpAlreadyUpgraded,
    Upgraded,
)
from auction_deployment.params import Deployer, DeploymentParameters, Transactor
from auction_deployment.probe import LivenessProber, read_current_implementation
from auction_deployment.strategies import STRATEGIES
from auction_deployment.types import (
    Degraded,
    DeploymentRecord,
    Discrepancy,
    Fail,
    Intent,
    Probe,
    ReadResult,
)
from auction_deployment.verification import verify, verify_or_raise

Outcome = Union[Deployed, AlreadyDeployed, NoOpAlreadyUpgraded, Upgraded, BatchUpgraded]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LedgerState(Enum):
    BOOTSTRAP = "bootstrap"
    STALE = "stale"
    ALREADY_UPGRADED_CONSISTENT = "already-upgraded-consistent"
    ALREADY_UPGRADED_INCONSISTENT = "already-upgraded-inconsistent"
    NEEDS_UPGRADE = "needs-upgrade"


class Assessment(NamedTuple):
    state: LedgerState
    dead: Sequence[Probe] = ()
    implementation: Optional[ReadResult] = None


class Orchestrator:
    """
    Decides what a run does from the ledger it is handed and the live chain,
    then deploys or upgrades and returns the outcome with the record to persist.

    The orchestrator never touches the ledger file; see `execute`.
    """

    def __init__(
        self,
        network: Network,
        params: DeploymentParameters,
        autosign: bool = False,
        clock: Optional[Callable[[], str]] = None,
    ):
        params.check_network(network)
        self.network = network
        self.params = params
        self.autosign = autosign
        self.clock = clock or utc_now
        self.prober = LivenessProber(network)

    def assess(self, record: Optional[DeploymentRecord]) -> Assessment:
        if record is None:
            return Assessment(state=LedgerState.BOOTSTRAP)

        if record.chain_id != self.network.chain_id:
            raise DeploymentConfigError(
                f"Ledger was written for chain {record.chain_id}, "
                f"connected to chain {self.network.chain_id}"
            )

        dead = self.prober.dead_addresses(record)
        if dead:
            return Assessment(state=LedgerState.STALE, dead=dead)

        if not record.auction.upgraded:
            return Assessment(state=LedgerState.NEEDS_UPGRADE)

        result = read_current_implementation(
            self.network, record, factory_artifact=self.params.factory.artifact
        )
        if isinstance(result, Fail):
            return Assessment(state=LedgerState.ALREADY_UPGRADED_INCONSISTENT, implementation=result)
        if to_checksum_address(result.value) == to_checksum_address(record.auction.implementation):
            state = LedgerState.ALREADY_UPGRADED_CONSISTENT
        else:
            state = LedgerState.ALREADY_UPGRADED_INCONSISTENT
        return Assessment(state=state, implementation=result)

    def run(self, intent: Intent, record: Optional[DeploymentRecord]) -> Outcome:
        assessment = self.assess(record)
        print(f"(i) Ledger state: {assessment.state.value}")

        if assessment.state is LedgerState.BOOTSTRAP:
            return self._bootstrap()

        if assessment.state is LedgerState.STALE:
            raise StaleLedger(assessment.dead)

        if intent is Intent.BOOTSTRAP:
            return AlreadyDeployed(network=record.network)

        if assessment.state is LedgerState.ALREADY_UPGRADED_CONSISTENT:
            return NoOpAlreadyUpgraded(implementation=record.auction.implementation)

        reconciled = list()
        if assessment.state is LedgerState.ALREADY_UPGRADED_INCONSISTENT:
            reconciled = self._report_inconsistency(record, assessment.implementation)

        return self._upgrade(intent, record, reconciled)

    def _report_inconsistency(
        self, record: DeploymentRecord, implementation: ReadResult
    ) -> List[Discrepancy]:
        print("! Ledger says upgraded but does not match the chain; upgrading again")
        if isinstance(implementation, Fail):
            print(f"! Could not read the current implementation: {implementation.reason}")
            return list()
        if isinstance(implementation, Degraded):
            print(
                f"! Implementation read through {implementation.strategy} "
                f"after: {implementation.reason}"
            )
            return list()
        discrepancies = verify(self.network, record, factory_artifact=self.params.factory.artifact)
        for discrepancy in discrepancies:
            print(f"! {discrepancy}")
        return discrepancies

    def _bootstrap(self) -> Deployed:
        deployer = Deployer(self.network, self.params, autosign=self.autosign)
        record = bootstrap(deployer, deployed_at=self.clock())

        dead = self.prober.dead_addresses(record)
        if dead:
            raise VerificationFailed(
                Discrepancy(field=probe.label, expected="contract code", actual="no code")
                for probe in dead
            )
        verify_or_raise(self.network, record, factory_artifact=self.params.factory.artifact)
        return Deployed(record=record)

    def _upgrade(
        self, intent: Intent, record: DeploymentRecord, reconciled: List[Discrepancy]
    ) -> Union[Upgraded, BatchUpgraded]:
        if intent not in STRATEGIES:
            raise DeploymentConfigError(f"No upgrade strategy for intent '{intent.value}'")

        transactor = Transactor(self.network, signer=DEPLOYER, autosign=self.autosign)
        result = STRATEGIES[intent](transactor, record, self.params)

        auction = record.auction._replace(
            implementation=result.implementation,
            proxy_implementation=result.proxy_implementation,
            strategy=intent,
        )
        if result.complete:
            auction = auction._replace(upgraded=True, upgrade_time=self.clock())
        else:
            auction = auction._replace(upgraded=False)
        updated = record._replace(auction=auction, instances=result.instances)

        verify_or_raise(self.network, updated, factory_artifact=self.params.factory.artifact)

        if intent is Intent.BATCH_REPOINT:
            return BatchUpgraded(
                implementation=result.implementation,
                record=updated,
                upgraded=result.upgraded,
                failure=result.failure,
                not_attempted=result.not_attempted,
                reconciled=reconciled,
            )
        return Upgraded(
            strategy=intent,
            implementation=result.implementation,
            record=updated,
            reconciled=reconciled,
        )


def execute(intent: Intent, store: LedgerStore, orchestrator: Orchestrator) -> Outcome:
    """Loads the ledger once, runs the orchestrator, and saves at most once."""
    try:
        record = store.load()
    except LedgerNotFound:
        print(f"(i) No ledger at {store.filepath}")
        record = None

    outcome = orchestrator.run(intent, record)
    if outcome.record is not None:
        store.save(outcome.record)
    return outcome

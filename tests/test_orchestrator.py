import pytest

from auction_deployment.constants import (
    AUCTION_V2,
    FACTORY_SET_IMPLEMENTATION,
    SET_PRICE_FEED,
    UUPS_UPGRADE,
    ZERO_ADDRESS,
)
from auction_deployment.exceptions import (
    DeploymentConfigError,
    OperatorAbort,
    PostUpgradeVerificationFailed,
    StaleLedger,
)
from auction_deployment.orchestrator import LedgerState, Orchestrator, execute
from auction_deployment.outcomes import (
    AlreadyDeployed,
    BatchUpgraded,
    Deployed,
    NoOpAlreadyUpgraded,
    Upgraded,
)
from auction_deployment.types import Fail, Intent, Ok
from tests.conftest import DEPLOYED_AT, UPGRADED_AT, FakeChain


@pytest.fixture
def deployed(store, orchestrator):
    outcome = execute(Intent.BOOTSTRAP, store, orchestrator)
    assert isinstance(outcome, Deployed)
    return outcome.record


def test_bootstrap_deploys_every_recorded_contract(fake_chain, store, orchestrator):
    outcome = execute(Intent.BOOTSTRAP, store, orchestrator)

    assert isinstance(outcome, Deployed)
    assert outcome.exit_code == 0
    record = store.load()
    assert record == outcome.record

    for labelled in record.contract_addresses():
        assert fake_chain.get_code(labelled.address), labelled.label

    assert list(record.base_contracts) == ["NFT", "USDC"]
    assert set(record.price_feeds) == {"eth", "usdc"}
    assert record.auction.upgraded is False
    assert record.auction.upgrade_time is None
    assert record.auction.proxy_implementation == record.auction.implementation
    assert record.deployed_at == DEPLOYED_AT
    assert record.instances == {}
    assert record.accounts == fake_chain.accounts


def test_bootstrap_wires_contracts_together(fake_chain, deployed):
    factory = fake_chain.factories[deployed.factory.address]
    assert factory["implementation"] == deployed.auction.implementation
    assert fake_chain.proxies[deployed.auction.proxy_address] == deployed.auction.implementation

    feeds = fake_chain.price_feeds[deployed.auction.proxy_address]
    assert feeds[ZERO_ADDRESS] == deployed.price_feeds["eth"]
    assert feeds[deployed.base_contracts["USDC"].address] == deployed.price_feeds["usdc"]

    mints = [tx for tx in fake_chain.transactions if tx.method == "mint"]
    nft, usdc = deployed.base_contracts["NFT"], deployed.base_contracts["USDC"]
    assert mints[0].address == nft.address
    assert mints[0].args == (fake_chain.accounts["alice"], 5, "ipfs://demo-uri")
    assert mints[1].address == usdc.address
    assert mints[1].args == (fake_chain.accounts["bob"], 1_000_000_000)
    assert nft.metadata == {"tokenId": 5, "aliceAddress": fake_chain.accounts["alice"]}


def test_auction_initializer_arguments(fake_chain, deployed):
    auction_deployment = next(
        tx for tx in fake_chain.transactions if tx.address == deployed.auction.proxy_address
    )
    assert auction_deployment.method == "initialize"
    assert auction_deployment.args == (
        fake_chain.accounts["alice"],
        604800,
        1_000_000,
        deployed.base_contracts["USDC"].address,
        5,
        deployed.base_contracts["NFT"].address,
        ZERO_ADDRESS,
        1,
    )


def test_no_ledger_bootstraps_whatever_the_intent(fake_chain, store, orchestrator):
    outcome = execute(Intent.IN_PLACE_UPGRADE, store, orchestrator)
    assert isinstance(outcome, Deployed)
    assert outcome.record.auction.upgraded is False


def test_bootstrap_intent_on_live_ledger_is_a_noop(fake_chain, store, orchestrator, deployed):
    before = store.filepath.read_bytes()
    transactions = len(fake_chain.transactions)

    outcome = execute(Intent.BOOTSTRAP, store, orchestrator)

    assert isinstance(outcome, AlreadyDeployed)
    assert outcome.record is None
    assert len(fake_chain.transactions) == transactions
    assert store.filepath.read_bytes() == before


def test_in_place_upgrade_keeps_proxy_address(fake_chain, store, orchestrator, clock, deployed):
    clock.now = UPGRADED_AT
    outcome = execute(Intent.IN_PLACE_UPGRADE, store, orchestrator)

    assert isinstance(outcome, Upgraded)
    record = store.load()
    new_implementation = outcome.implementation
    assert new_implementation != deployed.auction.implementation
    assert fake_chain.code[new_implementation] == AUCTION_V2

    assert record.auction.proxy_address == deployed.auction.proxy_address
    assert fake_chain.get_implementation_address(record.auction.proxy_address) == new_implementation
    assert fake_chain.factories[record.factory.address]["implementation"] == new_implementation
    assert record.auction.implementation == new_implementation
    assert record.auction.proxy_implementation == new_implementation
    assert record.auction.upgraded is True
    assert record.auction.upgrade_time == UPGRADED_AT
    assert record.auction.strategy is Intent.IN_PLACE_UPGRADE


def test_second_run_is_idempotent(fake_chain, store, orchestrator, deployed):
    execute(Intent.IN_PLACE_UPGRADE, store, orchestrator)
    ledger = store.filepath.read_bytes()
    transactions = len(fake_chain.transactions)

    outcome = execute(Intent.IN_PLACE_UPGRADE, store, orchestrator)

    assert isinstance(outcome, NoOpAlreadyUpgraded)
    assert outcome.exit_code == 0
    assert len(fake_chain.transactions) == transactions
    assert store.filepath.read_bytes() == ledger


def test_already_upgraded_is_a_noop_for_any_strategy(fake_chain, store, orchestrator, deployed):
    execute(Intent.SWAP_IMPLEMENTATION, store, orchestrator)
    transactions = len(fake_chain.transactions)

    outcome = execute(Intent.IN_PLACE_UPGRADE, store, orchestrator)

    assert isinstance(outcome, NoOpAlreadyUpgraded)
    assert len(fake_chain.transactions) == transactions


def test_stale_ledger_after_node_reset(fake_chain, store, orchestrator, deployed):
    ledger = store.filepath.read_bytes()
    fake_chain.reset()
    transactions = len(fake_chain.transactions)

    with pytest.raises(StaleLedger) as error:
        execute(Intent.IN_PLACE_UPGRADE, store, orchestrator)

    labels = [probe.label for probe in error.value.dead]
    assert labels[:2] == ["auctionFactory.address", "auction.proxyAddress"]
    assert len(fake_chain.transactions) == transactions
    assert store.filepath.read_bytes() == ledger


def test_swap_leaves_existing_auctions_alone(fake_chain, store, orchestrator, deployed):
    original = deployed.auction.implementation
    existing_auction = fake_chain.create_auction(deployed.factory.address)

    outcome = execute(Intent.SWAP_IMPLEMENTATION, store, orchestrator)

    assert isinstance(outcome, Upgraded)
    new_implementation = outcome.implementation
    assert fake_chain.get_implementation_address(existing_auction) == original
    assert fake_chain.get_implementation_address(deployed.auction.proxy_address) == original
    assert fake_chain.factories[deployed.factory.address]["implementation"] == new_implementation

    upgrades = [tx for tx in fake_chain.transactions if tx.method == UUPS_UPGRADE]
    assert upgrades == []

    record = store.load()
    assert record.auction.implementation == new_implementation
    assert record.auction.proxy_implementation == original
    assert record.auction.strategy is Intent.SWAP_IMPLEMENTATION

    new_auction = fake_chain.create_auction(deployed.factory.address)
    assert fake_chain.get_implementation_address(new_auction) == new_implementation


def test_batch_repoints_every_instance(fake_chain, store, orchestrator, deployed):
    instances = [fake_chain.create_auction(deployed.factory.address) for _ in range(3)]

    outcome = execute(Intent.BATCH_REPOINT, store, orchestrator)

    assert isinstance(outcome, BatchUpgraded)
    assert outcome.complete
    assert outcome.count == 3
    assert outcome.exit_code == 0
    assert outcome.partial_failure_at is None
    for instance in instances:
        assert fake_chain.get_implementation_address(instance) == outcome.implementation

    record = store.load()
    assert record.auction.upgraded is True
    assert record.instances == {instance: outcome.implementation for instance in instances}


def test_batch_stops_at_first_failure(fake_chain, store, orchestrator, deployed):
    first, second, third = [fake_chain.create_auction(deployed.factory.address) for _ in range(3)]
    fake_chain.failing_upgrades.add(second)
    original = deployed.auction.implementation

    outcome = execute(Intent.BATCH_REPOINT, store, orchestrator)

    assert isinstance(outcome, BatchUpgraded)
    assert not outcome.complete
    assert outcome.exit_code == 1
    assert outcome.upgraded == [first]
    assert outcome.partial_failure_at == second
    assert "execution reverted" in str(outcome.failure.error)
    assert outcome.not_attempted == [third]

    attempted = [tx.address for tx in fake_chain.transactions if tx.method == UUPS_UPGRADE]
    assert attempted == [first]
    assert fake_chain.get_implementation_address(first) == outcome.implementation
    assert fake_chain.get_implementation_address(second) == original
    assert fake_chain.get_implementation_address(third) == original

    record = store.load()
    assert record.auction.upgraded is False
    assert record.auction.upgrade_time is None
    assert record.auction.implementation == outcome.implementation
    assert record.instances == {first: outcome.implementation, second: original, third: original}


def test_batch_records_upgrade_whose_confirmation_failed(
    fake_chain, store, orchestrator, deployed, monkeypatch
):
    first, second, third = [fake_chain.create_auction(deployed.factory.address) for _ in range(3)]
    original = deployed.auction.implementation

    def lose_confirmation(artifact, address, method, args, signer, value=0):
        receipt = FakeChain.call_contract(fake_chain, artifact, address, method, args, signer, value)
        if method == UUPS_UPGRADE and address == second:
            fake_chain.flaky_implementation_reads.add(second)
        return receipt

    monkeypatch.setattr(fake_chain, "call_contract", lose_confirmation)

    outcome = execute(Intent.BATCH_REPOINT, store, orchestrator)

    assert isinstance(outcome, BatchUpgraded)
    assert outcome.exit_code == 1
    assert outcome.upgraded == [first]
    assert outcome.partial_failure_at == second
    assert "timed out" in str(outcome.failure.error)
    assert outcome.not_attempted == [third]
    assert fake_chain.get_implementation_address(second) == outcome.implementation

    record = store.load()
    assert record.auction.upgraded is False
    assert record.instances == {
        first: outcome.implementation,
        second: outcome.implementation,
        third: original,
    }


def test_partial_batch_can_be_resumed(fake_chain, store, orchestrator, deployed):
    instances = [fake_chain.create_auction(deployed.factory.address) for _ in range(3)]
    fake_chain.failing_upgrades.add(instances[1])
    execute(Intent.BATCH_REPOINT, store, orchestrator)
    fake_chain.failing_upgrades.clear()

    outcome = execute(Intent.BATCH_REPOINT, store, orchestrator)

    assert outcome.complete
    assert outcome.count == 3
    assert store.load().auction.upgraded is True


def test_out_of_band_factory_change_is_reconciled(fake_chain, store, orchestrator, deployed):
    execute(Intent.IN_PLACE_UPGRADE, store, orchestrator)
    record = store.load()
    rogue = fake_chain.deploy_contract(AUCTION_V2, [], signer="deployer")
    fake_chain.factories[record.factory.address]["implementation"] = rogue

    assessment = orchestrator.assess(record)
    assert assessment.state is LedgerState.ALREADY_UPGRADED_INCONSISTENT
    assert assessment.implementation == Ok(value=rogue, strategy="factory-pointer")

    outcome = execute(Intent.IN_PLACE_UPGRADE, store, orchestrator)

    assert isinstance(outcome, Upgraded)
    assert len(outcome.reconciled) == 1
    assert outcome.reconciled[0].field == "auctionFactory.implementation"
    assert outcome.reconciled[0].actual == rogue
    assert fake_chain.factories[record.factory.address]["implementation"] == outcome.implementation


def test_unreadable_implementation_means_upgrade_again(fake_chain, store, orchestrator, deployed):
    execute(Intent.SWAP_IMPLEMENTATION, store, orchestrator)
    record = store.load()
    fake_chain.failing_reads.add("getNFTAuctionImplementation")

    assessment = orchestrator.assess(record)

    # the proxy slot still holds the pre-swap implementation
    assert assessment.state is LedgerState.ALREADY_UPGRADED_INCONSISTENT
    assert assessment.implementation.strategy == "proxy-slot"


def test_post_upgrade_mismatch_leaves_ledger_untouched(
    fake_chain, store, orchestrator, deployed, monkeypatch
):
    ledger = store.filepath.read_bytes()

    def set_implementation_elsewhere(artifact, address, method, args, signer, value=0):
        receipt = FakeChain.call_contract(fake_chain, artifact, address, method, args, signer, value)
        if method == FACTORY_SET_IMPLEMENTATION:
            fake_chain.factories[address]["implementation"] = deployed.auction.implementation
        return receipt

    monkeypatch.setattr(fake_chain, "call_contract", set_implementation_elsewhere)

    with pytest.raises(PostUpgradeVerificationFailed) as error:
        execute(Intent.SWAP_IMPLEMENTATION, store, orchestrator)

    assert error.value.source == "factory"
    assert error.value.actual == deployed.auction.implementation
    assert store.filepath.read_bytes() == ledger


def test_ledger_from_another_chain_is_rejected(params, store, deployed, clock):
    other_chain = FakeChain(chain_id=1337)
    orchestrator = Orchestrator(network=other_chain, params=params, autosign=True, clock=clock)
    with pytest.raises(DeploymentConfigError):
        orchestrator.assess(deployed)


def test_declined_checkpoint_aborts_before_any_transaction(
    fake_chain, params, store, clock, monkeypatch
):
    monkeypatch.setattr("builtins.input", lambda question: "n")
    orchestrator = Orchestrator(network=fake_chain, params=params, autosign=False, clock=clock)

    with pytest.raises(OperatorAbort):
        execute(Intent.BOOTSTRAP, store, orchestrator)

    assert fake_chain.transactions == []
    assert not store.exists()


def test_declined_checkpoint_mid_bootstrap(fake_chain, params, store, clock, monkeypatch):
    answers = iter(["y", "y", "y", "n"])
    monkeypatch.setattr("builtins.input", lambda question: next(answers))
    orchestrator = Orchestrator(network=fake_chain, params=params, autosign=False, clock=clock)

    with pytest.raises(OperatorAbort):
        execute(Intent.BOOTSTRAP, store, orchestrator)

    # start, deploy NFT, mint, then declined the USDC deployment
    assert [tx.method for tx in fake_chain.transactions] == ["constructor", "mint"]
    assert not store.exists()


def test_interactive_run_asks_before_each_step(fake_chain, params, store, clock, monkeypatch):
    questions = list()

    def answer(question):
        questions.append(question)
        return "y"

    monkeypatch.setattr("builtins.input", answer)
    orchestrator = Orchestrator(network=fake_chain, params=params, autosign=False, clock=clock)

    outcome = execute(Intent.BOOTSTRAP, store, orchestrator)

    assert isinstance(outcome, Deployed)
    assert len([q for q in questions if SET_PRICE_FEED in q]) == 2
    assert any("Zero Address" in q for q in questions)


def test_assess_fresh_and_pending_records(orchestrator, deployed):
    assert orchestrator.assess(None).state is LedgerState.BOOTSTRAP
    assert orchestrator.assess(deployed).state is LedgerState.NEEDS_UPGRADE


def test_assess_fail_when_nothing_can_be_read(fake_chain, store, orchestrator, deployed):
    execute(Intent.IN_PLACE_UPGRADE, store, orchestrator)
    record = store.load()
    fake_chain.failing_reads.add("getNFTAuctionImplementation")
    fake_chain.proxies.pop(record.auction.proxy_address)

    assessment = orchestrator.assess(record)

    assert assessment.state is LedgerState.ALREADY_UPGRADED_INCONSISTENT
    assert isinstance(assessment.implementation, Fail)

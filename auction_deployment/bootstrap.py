from collections import OrderedDict

from auction_deployment.constants import LEDGER_VERSION, SET_PRICE_FEED
from auction_deployment.params import Deployer
from auction_deployment.types import (
    AuctionRecord,
    BaseContract,
    DeploymentRecord,
    FactoryRecord,
)

FACTORY_IMPLEMENTATION_PARAMETER = "_nftAuctionImplementation"


def bootstrap(deployer: Deployer, deployed_at: str) -> DeploymentRecord:
    """
    Deploys the full auction system and returns its (unsaved) ledger record.

    Order matters: base tokens first since the auction initializer takes their
    addresses, then the auction proxy, its price feeds, and finally the factory
    which is initialized with the auction implementation.
    """
    params = deployer.params
    network = deployer.network
    deployer.checkpoint(f"bootstrap deployment on {network.name}")

    print("\n=== Deploying base contracts ===")
    base_contracts = OrderedDict()
    for contract in params.contracts:
        address = deployer.deploy(contract.name, contract.constructor, name=contract.name)
        for method, args in contract.setup:
            deployer.transact(contract.name, address, method, *deployer.resolve_params(args).values())
        base_contracts[contract.name] = BaseContract(
            address=address, metadata=dict(deployer.resolve_params(contract.metadata))
        )

    print(f"\n=== Deploying {params.auction.artifact} (UUPS) ===")
    proxy_address = deployer.deploy_proxy(params.auction)
    implementation = network.get_implementation_address(proxy_address)
    print(f"(i) Auction proxy: {proxy_address}")
    print(f"(i) Auction implementation: {implementation}")

    print("\n=== Deploying price feeds ===")
    price_feeds = OrderedDict()
    for feed in params.price_feeds:
        feed_address = deployer.deploy(params.price_feed_artifact, feed.constructor)
        deployer.transact(
            params.auction.artifact,
            proxy_address,
            SET_PRICE_FEED,
            deployer.resolve(feed.asset),
            feed_address,
        )
        price_feeds[feed.symbol] = feed_address

    print(f"\n=== Deploying {params.factory.artifact} (UUPS) ===")
    factory_address = deployer.deploy_proxy(
        params.factory, args=OrderedDict({FACTORY_IMPLEMENTATION_PARAMETER: implementation})
    )
    print(f"(i) Auction factory: {factory_address}")

    accounts = OrderedDict(
        (role, network.get_account(role)) for role in params.named_accounts
    )

    return DeploymentRecord(
        version=LEDGER_VERSION,
        network=network.name,
        chain_id=network.chain_id,
        base_contracts=base_contracts,
        auction=AuctionRecord(
            implementation=implementation,
            proxy_address=proxy_address,
            proxy_implementation=implementation,
        ),
        factory=FactoryRecord(address=factory_address),
        price_feeds=price_feeds,
        accounts=accounts,
        instances=dict(),
        deployed_at=deployed_at,
    )

from pathlib import Path

import auction_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(auction_deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
DEFAULT_PARAMS_FILENAME = "auction.yml"

LEDGER_DIRNAME = ".cache"
LEDGER_FILENAME = "NFTAuction_deployment.json"
LEDGER_VERSION = 1

#
# Networks
#

LOCAL = "local"
HARDHAT = "hardhat"

LOCAL_NETWORKS = [LOCAL, HARDHAT, "local-fork"]

#
# Accounts
#

DEPLOYER = "deployer"
NAMED_ACCOUNTS = {
    # role -> test account index
    DEPLOYER: 0,
    "alice": 1,
    "bob": 2,
    "carol": 3,
}

#
# Contracts
#

# artifact names used when no params file says otherwise
AUCTION_V2 = "NFTAuctionV2"
AUCTION_FACTORY = "NFTAuctionFactory"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# EIP1967 Implementation slot - https://eips.ethereum.org/EIPS/eip-1967#logic-contract-address
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"
PROXY_CONTRACT = "ERC1967Proxy"

#
# Contract methods
#

# names as deployed; the factory initializer typo is part of its ABI
AUCTION_INITIALIZER = "initialize"
FACTORY_INITIALIZER = "initalize"
FACTORY_GET_IMPLEMENTATION = "getNFTAuctionImplementation"
FACTORY_SET_IMPLEMENTATION = "setNFTAuctionImplementation"
FACTORY_LIST_INSTANCES = "listInstances"
SET_PRICE_FEED = "setPriceFeed"
UUPS_UPGRADE = "upgradeToAndCall"

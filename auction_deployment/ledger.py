import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from eth_utils import to_checksum_address

from auction_deployment.constants import LEDGER_DIRNAME, LEDGER_FILENAME, LEDGER_VERSION
from auction_deployment.exceptions import CorruptLedger, LedgerNotFound
from auction_deployment.types import (
    AuctionRecord,
    BaseContract,
    DeploymentRecord,
    FactoryRecord,
    Intent,
)

STANDARD_LEDGER_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


def get_ledger_filepath(network: str, config: Optional[Dict] = None) -> Path:
    """Returns the fixed ledger location for a network: <dir>/<network>/<filename>."""
    config = config or dict()
    ledger_config = config.get("ledger") or dict()
    ledger_dir = Path(ledger_config.get("dir") or Path.cwd() / LEDGER_DIRNAME)
    filename = ledger_config.get("filename") or LEDGER_FILENAME
    return ledger_dir / network / filename


def _checksum_mapping(data: Dict[str, str]) -> Dict[str, str]:
    return {key: to_checksum_address(value) for key, value in data.items()}


def record_to_json(record: DeploymentRecord) -> Dict[str, Any]:
    auction = record.auction
    return {
        "version": record.version,
        "network": record.network,
        "chainId": record.chain_id,
        "deployedAt": record.deployed_at,
        "baseContracts": {
            name: {"address": contract.address, "metadata": contract.metadata}
            for name, contract in record.base_contracts.items()
        },
        "auction": {
            "implementation": auction.implementation,
            "proxyAddress": auction.proxy_address,
            "proxyImplementation": auction.proxy_implementation,
            "upgraded": auction.upgraded,
            "upgradeTime": auction.upgrade_time,
            "strategy": auction.strategy.value if auction.strategy else None,
        },
        "auctionFactory": {"address": record.factory.address},
        "priceFeed": dict(record.price_feeds),
        "instances": dict(record.instances),
        "accounts": dict(record.accounts),
    }


def record_from_json(data: Dict[str, Any]) -> DeploymentRecord:
    """Builds a record from its JSON form; raises KeyError, TypeError or ValueError on bad input."""
    version = data.get("version")
    if version != LEDGER_VERSION:
        raise ValueError(f"Unsupported ledger version {version!r}")

    auction_data = data["auction"]
    strategy = auction_data.get("strategy")
    auction = AuctionRecord(
        implementation=to_checksum_address(auction_data["implementation"]),
        proxy_address=to_checksum_address(auction_data["proxyAddress"]),
        proxy_implementation=to_checksum_address(
            auction_data.get("proxyImplementation") or auction_data["implementation"]
        ),
        upgraded=bool(auction_data.get("upgraded", False)),
        upgrade_time=auction_data.get("upgradeTime"),
        strategy=Intent(strategy) if strategy else None,
    )
    if auction.upgraded and not auction.upgrade_time:
        raise ValueError("auction.upgraded is set without auction.upgradeTime")

    base_contracts = dict()
    for name, contract in data["baseContracts"].items():
        base_contracts[name] = BaseContract(
            address=to_checksum_address(contract["address"]),
            metadata=dict(contract.get("metadata") or {}),
        )

    return DeploymentRecord(
        version=version,
        network=data["network"],
        chain_id=int(data["chainId"]),
        base_contracts=base_contracts,
        auction=auction,
        factory=FactoryRecord(address=to_checksum_address(data["auctionFactory"]["address"])),
        price_feeds=_checksum_mapping(data["priceFeed"]),
        accounts=_checksum_mapping(data["accounts"]),
        instances={
            to_checksum_address(instance): to_checksum_address(implementation)
            for instance, implementation in (data.get("instances") or {}).items()
        },
        deployed_at=data["deployedAt"],
    )


class LedgerStore:
    """
    Owns the ledger file of one network.

    Only one run may use a given ledger at a time; there is no file locking.
    """

    def __init__(self, filepath: Path):
        self.filepath = Path(filepath)

    @classmethod
    def for_network(cls, network: str, config: Optional[Dict] = None) -> "LedgerStore":
        return cls(get_ledger_filepath(network=network, config=config))

    def exists(self) -> bool:
        return self.filepath.exists()

    def load(self) -> DeploymentRecord:
        try:
            with open(self.filepath, "r", encoding="utf-8") as file:
                data = json.load(file)
        except FileNotFoundError:
            raise LedgerNotFound(f"No ledger at {self.filepath}")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptLedger(f"Ledger at {self.filepath} is not valid JSON: {e}") from e

        try:
            return record_from_json(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CorruptLedger(f"Ledger at {self.filepath} is malformed: {e!r}") from e

    def save(self, record: DeploymentRecord) -> Path:
        """Replaces the ledger with `record` in one atomic rename."""
        data = record_to_json(record)
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        temp_filepath = self.filepath.with_suffix(".temp.json")
        try:
            with open(temp_filepath, "w", encoding="utf-8") as file:
                json.dump(data, file, **STANDARD_LEDGER_JSON_FORMAT)
                file.write("\n")
                file.flush()
                os.fsync(file.fileno())
            os.replace(temp_filepath, self.filepath)
        except Exception:
            print(f"Error when writing ledger at {self.filepath}.")
            if temp_filepath.exists():
                temp_filepath.unlink()
            raise

        print(f"(i) Ledger written to {self.filepath}")
        return self.filepath

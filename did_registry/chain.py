"""
Chain - Minimal execution substrate for the DID Registry
=========================================================

Groups contract calls into blocks, hands each call its sender and the
block height, and records one receipt per transaction. Calls run one at
a time, in block order.

Devnet accounts are Ethereum-style accounts derived from their names, so
addresses are stable across runs.
"""

import json
import logging
from collections import deque
from typing import Optional, List, Dict, Any, Deque, Sequence
from dataclasses import dataclass, field

from eth_account import Account

from .config import RegistrySettings, settings as default_settings
from .errors import InvalidArgumentError
from .models import CallContext
from .principal import Principal, seed_to_private_key
from .registry import DIDRegistry, write_json_atomic

logger = logging.getLogger("DIDRegistry.chain")

DEVNET_SEED_PREFIX = "did-registry-devnet:"


@dataclass
class DevnetAccount:
    """Named account with a deterministic key pair"""
    name: str
    address: str
    private_key: str

    @classmethod
    def from_name(cls, name: str) -> "DevnetAccount":
        private_key = seed_to_private_key(DEVNET_SEED_PREFIX + name)
        account = Account.from_key(private_key)
        return cls(name=name, address=account.address, private_key=private_key)

    @property
    def principal(self) -> Principal:
        return Principal(self.address)

    def to_dict(self) -> Dict[str, Any]:
        """Public view (no private key)"""
        return {"name": self.name, "address": self.address}


@dataclass
class Tx:
    """A contract call waiting to be mined"""
    contract: str
    method: str
    args: List[Any]
    sender: str  # address

    @classmethod
    def contract_call(cls, contract: str, method: str, args: Sequence[Any], sender: str) -> "Tx":
        return cls(contract=contract, method=method, args=list(args), sender=sender)


@dataclass
class Receipt:
    """Result of one mined transaction"""
    tx: Tx
    result: Any
    error: Optional[str] = None  # set when the call was rejected as malformed

    @property
    def accepted(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        result = self.result
        if hasattr(result, "to_dict"):
            result = result.to_dict()
        receipt = {
            "contract": self.tx.contract,
            "method": self.tx.method,
            "sender": self.tx.sender,
            "result": result
        }
        if self.error:
            receipt["error"] = self.error
        return receipt


@dataclass
class Block:
    height: int
    receipts: List[Receipt] = field(default_factory=list)


class Chain:
    """
    Serializes registry calls into blocks

    The height starts at 0 (genesis); every mined block advances it by
    one and all of its transactions run at the new height. Only the most
    recent RECENT_BLOCKS blocks are kept.
    """

    def __init__(
        self,
        registry: Optional[DIDRegistry] = None,
        settings: Optional[RegistrySettings] = None
    ):
        self.settings = settings or default_settings
        self.registry = registry or DIDRegistry(self.settings)
        self.height = 0
        self.recent_blocks: Deque[Block] = deque(maxlen=self.settings.RECENT_BLOCKS)

        names = ["deployer"] + [f"wallet_{i}" for i in range(1, self.settings.DEVNET_WALLETS + 1)]
        self.accounts: Dict[str, DevnetAccount] = {
            name: DevnetAccount.from_name(name) for name in names
        }

    # ==================== BLOCKS ====================

    def mine_block(self, txs: Sequence[Tx]) -> Block:
        """
        Mine a block containing `txs`

        Args:
            txs: Transactions, executed in order at the new height

        Returns:
            Block with one receipt per transaction
        """
        for tx in txs:
            self._check_contract(tx.contract)

        self.height += 1
        block = Block(height=self.height)

        for tx in txs:
            # A malformed call is rejected on its own; the rest of the block still runs
            try:
                ctx = CallContext(caller=Principal(tx.sender), height=self.height)
                result = self.registry.call(tx.method, ctx, tx.args)
            except InvalidArgumentError as e:
                logger.warning(f"Rejected {tx.method} from {tx.sender}: {e}")
                block.receipts.append(Receipt(tx=tx, result=None, error=str(e)))
                continue
            block.receipts.append(Receipt(tx=tx, result=result))

        self.recent_blocks.append(block)
        logger.debug(f"Mined block {block.height} with {len(block.receipts)} transactions")
        return block

    def advance(self, blocks: int = 1) -> int:
        """
        Skip ahead by `blocks` empty blocks; returns the new height

        Empty blocks change nothing but the height, so they are not kept.
        """
        if isinstance(blocks, bool) or not isinstance(blocks, int) or blocks < 0:
            raise InvalidArgumentError("blocks must be a non-negative integer")
        if blocks > self.settings.MAX_ADVANCE_BLOCKS:
            raise InvalidArgumentError(
                f"Cannot advance more than {self.settings.MAX_ADVANCE_BLOCKS} blocks at once"
            )
        self.height += blocks
        return self.height

    def call_read_only(self, method: str, args: Sequence[Any], sender: str) -> Any:
        """Evaluate a read-only function at the current height without mining"""
        ctx = CallContext(caller=Principal(sender), height=self.height)
        return self.registry.call(method, ctx, list(args), read_only=True)

    # ==================== UTILITIES ====================

    def _check_contract(self, contract: str):
        if contract != self.settings.CONTRACT_NAME:
            raise InvalidArgumentError(f"Contract not found: {contract}")

    def export_state(self) -> Dict[str, Any]:
        """Registry snapshot plus the current height"""
        return {"height": self.height, "registry": self.registry.export_state()}

    def import_state(self, data: Dict[str, Any]):
        """
        Restore a snapshot from export_state()

        The height may not lie behind any record in the registry snapshot,
        so heights keep growing across restarts.
        """
        if not isinstance(data, dict):
            raise InvalidArgumentError("Chain snapshot must be a JSON object")
        height = data.get("height")
        if isinstance(height, bool) or not isinstance(height, int) or height < 0:
            raise InvalidArgumentError(f"Invalid chain height: {height!r}")
        self.registry.import_state(data.get("registry", {}), max_height=height)
        self.height = height
        self.recent_blocks.clear()

    def save_state(self, filepath: str):
        write_json_atomic(filepath, self.export_state())

    def load_state(self, filepath: str):
        with open(filepath, 'r') as f:
            data = json.load(f)
        self.import_state(data)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "height": self.height,
            "recent_blocks": len(self.recent_blocks),
            "registry": self.registry.get_statistics()
        }

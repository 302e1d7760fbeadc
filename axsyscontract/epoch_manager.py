"""Epoch bookkeeping stored in the epoch manager system contract."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any

from .common import (
    EPOCH_MANAGER_CONTRACT_ADDR,
    Account,
    Address,
    ExecutionResult,
    Message,
    StateLedger,
    SystemContract,
    SystemContractConfig,
)

NEXT_EPOCH_INFO_KEY = "nextEpochInfoKey"
HISTORY_EPOCH_INFO_KEY_PREFIX = "historyEpochInfoKeyPrefix"

_KNOWN_FIELDS = ("epoch", "epoch_period", "start_block")


@dataclass
class EpochInfo:
    """Description of one epoch; unknown JSON fields are kept in ``extra``."""

    epoch: int = 0
    epoch_period: int = 0
    start_block: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def clone(self) -> EpochInfo:
        return EpochInfo(
            epoch=self.epoch,
            epoch_period=self.epoch_period,
            start_block=self.start_block,
            extra=copy.deepcopy(self.extra),
        )

    def to_json(self) -> bytes:
        document = {
            **self.extra,
            "epoch": self.epoch,
            "epoch_period": self.epoch_period,
            "start_block": self.start_block,
        }
        return json.dumps(document, separators=(",", ":")).encode()

    @classmethod
    def from_json(cls, data: bytes | str) -> EpochInfo:
        document = json.loads(data)
        if not isinstance(document, dict):
            raise ValueError("epoch info must be a JSON object")
        extra = {k: v for k, v in document.items() if k not in _KNOWN_FIELDS}
        return cls(
            epoch=int(document.get("epoch", 0)),
            epoch_period=int(document.get("epoch_period", 0)),
            start_block=int(document.get("start_block", 0)),
            extra=extra,
        )


class EpochNotFoundError(LookupError):
    """The requested epoch information is not stored."""


def _history_key(epoch: int) -> bytes:
    return f"{HISTORY_EPOCH_INFO_KEY_PREFIX}_{epoch}".encode()


def _account(state_ledger: StateLedger) -> Account:
    return state_ledger.get_or_create_account(Address.from_hex(EPOCH_MANAGER_CONTRACT_ADDR))


def _advance(info: EpochInfo) -> EpochInfo:
    following = info.clone()
    following.epoch += 1
    following.start_block += following.epoch_period
    return following


class EpochManager(SystemContract):
    """System contract holding epoch history; it accepts no calls."""

    def __init__(self, config: SystemContractConfig | None = None) -> None:
        self.logger = (config or SystemContractConfig()).logger
        self.account: Account | None = None
        self.checked_height: int | None = None

    def reset(self, state_ledger: StateLedger) -> None:
        self.account = _account(state_ledger)

    def run(self, message: Message) -> ExecutionResult:
        raise RuntimeError("unsupported method")

    def estimate_gas(self, data: bytes) -> int:
        raise RuntimeError("unsupported method")

    def check_and_update_state(self, last_height: int, state_ledger: StateLedger) -> None:
        """Record the height checked; epoch state itself needs no per-block update."""
        self.checked_height = last_height


def init_epoch_info(state_ledger: StateLedger, epoch_info: EpochInfo) -> None:
    """Store ``epoch_info`` as history and the epoch after it as next."""
    account = _account(state_ledger)
    current = epoch_info.clone()
    account.set_state(_history_key(current.epoch), current.to_json())
    account.set_state(NEXT_EPOCH_INFO_KEY, _advance(current).to_json())


def _get_epoch(state_ledger: StateLedger, key: bytes | str) -> EpochInfo:
    data = _account(state_ledger).get_state(key)
    if data is None:
        raise EpochNotFoundError("not found epoch info")
    return EpochInfo.from_json(data)


def get_next_epoch_info(state_ledger: StateLedger) -> EpochInfo:
    return _get_epoch(state_ledger, NEXT_EPOCH_INFO_KEY)


def get_epoch_info(state_ledger: StateLedger, epoch: int) -> EpochInfo:
    return _get_epoch(state_ledger, _history_key(epoch))


def get_current_epoch_info(state_ledger: StateLedger) -> EpochInfo:
    following = get_next_epoch_info(state_ledger)
    return _get_epoch(state_ledger, _history_key(following.epoch - 1))


def turn_into_new_epoch(state_ledger: StateLedger) -> EpochInfo:
    """Promote the next epoch to current and return it."""
    account = _account(state_ledger)
    data = account.get_state(NEXT_EPOCH_INFO_KEY)
    if data is None:
        raise EpochNotFoundError("not found current epoch info")
    current = EpochInfo.from_json(data)
    account.set_state(_history_key(current.epoch), data)
    account.set_state(NEXT_EPOCH_INFO_KEY, _advance(current).to_json())
    return current
"""Registry of built-in system contracts keyed by address."""

from __future__ import annotations

import logging
from typing import Callable

from .common import (
    EPOCH_MANAGER_CONTRACT_ADDR,
    KYC_VERIFY_CONTRACT_ADDR,
    Address,
    StateLedger,
    SystemContract,
    SystemContractConfig,
)
from .epoch_manager import EpochManager
from .kyc_verification import KycVerification

_global_config = SystemContractConfig()

_CONSTRUCTORS: dict[Address, Callable[[SystemContractConfig], SystemContract]] = {
    Address.from_hex(EPOCH_MANAGER_CONTRACT_ADDR): EpochManager,
    Address.from_hex(KYC_VERIFY_CONTRACT_ADDR): KycVerification,
}


def initialize(logger: logging.Logger) -> None:
    """Set the logger handed to every system contract created afterwards."""
    _global_config.logger = logger


def get_system_contract(address: Address | None) -> SystemContract | None:
    """Return a fresh system contract for ``address``, or None if it is not one."""
    if address is None:
        return None
    constructor = _CONSTRUCTORS.get(address)
    return constructor(_global_config) if constructor is not None else None


def check_and_update_all_state(last_height: int, state_ledger: StateLedger) -> None:
    """Let every system contract update its state after block ``last_height``."""
    for constructor in _CONSTRUCTORS.values():
        constructor(_global_config).check_and_update_state(last_height, state_ledger)
"""Shared types for system contracts: addresses, messages, results and in-memory state."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from Crypto.Hash import keccak

ADDRESS_LENGTH = 20

# A special address that nobody controls.
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Contract that manages chain epoch information.
EPOCH_MANAGER_CONTRACT_ADDR = "0x0000000000000000000000000000000000000001"

# Contract that generates proposal identifiers.
PROPOSAL_ID_CONTRACT_ADDR = "0x0000000000000000000000000000000000001000"

# System contract address range is 0x1001-0xffff.
NODE_MANAGER_CONTRACT_ADDR = "0x0000000000000000000000000000000000001001"
COUNCIL_MANAGER_CONTRACT_ADDR = "0x0000000000000000000000000000000000001002"

# Unique name to address mapping.
ADDR2NAME_CONTRACT_ADDR = "0x0000000000000000000000000000000000001003"
KYC_VERIFY_CONTRACT_ADDR = "0x0000000000000000000000000000000000001004"
KYC_SERVICE_CONTRACT_ADDR = "0x0000000000000000000000000000000000001005"


def keccak256(data: bytes) -> bytes:
    """Return the Keccak-256 digest of ``data``."""
    return keccak.new(digest_bits=256, data=bytes(data)).digest()


def is_in_slice(value, items) -> bool:
    """Return whether ``value`` equals one of ``items``."""
    return any(item == value for item in items)


@dataclass(frozen=True)
class Address:
    """A 20-byte account address."""

    raw: bytes = bytes(ADDRESS_LENGTH)

    def __post_init__(self) -> None:
        if len(self.raw) != ADDRESS_LENGTH:
            raise ValueError(f"address must be {ADDRESS_LENGTH} bytes, got {len(self.raw)}")
        object.__setattr__(self, "raw", bytes(self.raw))

    @classmethod
    def from_hex(cls, text: str) -> Address:
        """Parse a hex address; longer input keeps its last 20 bytes, shorter is left padded."""
        digits = text[2:] if text[:2] in ("0x", "0X") else text
        if len(digits) % 2:
            digits = "0" + digits
        try:
            value = bytes.fromhex(digits)
        except ValueError as exc:
            raise ValueError(f"invalid hex address: {text!r}") from exc
        value = value[-ADDRESS_LENGTH:]
        return cls(value.rjust(ADDRESS_LENGTH, b"\x00"))

    def checksum(self) -> str:
        """Return the mixed-case checksummed hex form of the address."""
        lower = self.raw.hex()
        digest = keccak256(lower.encode("ascii")).hex()
        chars = (
            char.upper() if char.isalpha() and int(nibble, 16) >= 8 else char
            for char, nibble in zip(lower, digest)
        )
        return "0x" + "".join(chars)

    def __str__(self) -> str:
        return self.checksum()


@dataclass
class Log:
    """An event log emitted by a contract."""

    address: Address | None = None
    topics: list[bytes] = field(default_factory=list)
    data: bytes | None = None
    removed: bool = False


@dataclass
class Message:
    """A call message delivered to a contract."""

    sender: Address = field(default_factory=Address)
    data: bytes | None = None
    to: Address | None = None
    value: int = 0


@dataclass
class ExecutionResult:
    """The outcome of running a contract call."""

    used_gas: int = 0
    return_data: bytes = b""
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class SystemContractConfig:
    """Settings shared by all system contracts."""

    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("axsyscontract")
    )


class ExecutionRevertedError(Exception):
    """The call was reverted."""

    def __init__(self, message: str = "execution reverted") -> None:
        super().__init__(message)


def _as_key(key: bytes | str) -> bytes:
    return key.encode() if isinstance(key, str) else bytes(key)


class Account:
    """Key/value storage belonging to one address."""

    def __init__(self, address: Address) -> None:
        self.address = address
        self._state: dict[bytes, bytes] = {}

    def get_state(self, key: bytes | str) -> bytes | None:
        """Return the stored value for ``key``, or None when absent."""
        return self._state.get(_as_key(key))

    def set_state(self, key: bytes | str, value: bytes) -> None:
        self._state[_as_key(key)] = bytes(value)


class StateLedger:
    """In-memory world state holding accounts and emitted logs."""

    def __init__(self) -> None:
        self.accounts: dict[Address, Account] = {}
        self.logs: list[Log] = []

    def get_or_create_account(self, address: Address) -> Account:
        account = self.accounts.get(address)
        if account is None:
            account = self.accounts[address] = Account(address)
        return account

    def add_log(self, log: Log) -> None:
        self.logs.append(log)


class SystemContract(ABC):
    """Interface every built-in contract implements."""

    @abstractmethod
    def reset(self, state_ledger: StateLedger) -> None:
        """Bind the contract to ``state_ledger`` for the next call."""

    @abstractmethod
    def run(self, message: Message) -> ExecutionResult:
        """Execute ``message`` and return its result."""

    @abstractmethod
    def estimate_gas(self, data: bytes) -> int:
        """Return the gas a call with ``data`` would consume."""

    @abstractmethod
    def check_and_update_state(self, last_height: int, state_ledger: StateLedger) -> None:
        """Update contract state after block ``last_height`` if needed."""
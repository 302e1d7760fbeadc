"""KYC verification system contract: services submit and revoke user verifications."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Union

from .abi import decode_bytes_argument, method_id
from .common import (
    KYC_VERIFY_CONTRACT_ADDR,
    Account,
    Address,
    ExecutionResult,
    ExecutionRevertedError,
    Log,
    Message,
    StateLedger,
    SystemContract,
    SystemContractConfig,
    is_in_slice,
)

SUBMIT_METHOD = "Submit"
REMOVE_METHOD = "Remove"
KYC_SUBMIT_GAS = 30000
KYC_REMOVE_GAS = 30000
KYC_INFO_KEY = "kycinfo"
KYC_SERVICES_KEY = "kycservices"

_METHOD_SIGNATURES = {
    SUBMIT_METHOD: "Submit(bytes)",
    REMOVE_METHOD: "Remove(bytes)",
}

_WORD = 32

_log = logging.getLogger("axsyscontract.access")


class AccessError(Exception):
    """A KYC contract call was rejected."""


class CheckSubmitInfoError(AccessError):
    """A submitted KYC record failed validation."""

    def __init__(self, message: str = "check submit info fail") -> None:
        super().__init__(message)


class KycFlag(IntEnum):
    NOT_VERIFIED = 0
    VERIFIED = 1


class ModifyType(IntEnum):
    ADD_KYC_SERVICE = 4
    REMOVE_KYC_SERVICE = 5


@dataclass
class KycInfo:
    """Verification record of one user, issued by a KYC service."""

    user: Address = field(default_factory=Address)
    kyc_addr: Address = field(default_factory=Address)
    kyc_flag: int = KycFlag.NOT_VERIFIED
    expires: int = 0


@dataclass
class KycService:
    """An address allowed to issue KYC records."""

    kyc_addr: Address = field(default_factory=Address)


@dataclass
class SubmitArgs:
    kyc_infos: list[Union[KycInfo, None]] = field(default_factory=list)


@dataclass
class RemoveArgs:
    addresses: list[Address] = field(default_factory=list)


def _address_from_json(value: Any) -> Address:
    if value is None:
        return Address()
    return Address.from_hex(str(value))


def _info_to_dict(info: KycInfo | None) -> dict[str, Any] | None:
    if info is None:
        return None
    return {
        "User": str(info.user),
        "KycAddr": str(info.kyc_addr),
        "KycFlag": int(info.kyc_flag),
        "Expires": int(info.expires),
    }


def _info_from_dict(document: Any) -> KycInfo | None:
    if document is None:
        return None
    if not isinstance(document, dict):
        raise ValueError("kyc info must be a JSON object")
    return KycInfo(
        user=_address_from_json(document.get("User")),
        kyc_addr=_address_from_json(document.get("KycAddr")),
        kyc_flag=int(document.get("KycFlag", 0)),
        expires=int(document.get("Expires", 0)),
    )


def _service_to_dict(service: KycService) -> dict[str, str]:
    return {"KycAddr": str(service.kyc_addr)}


def _service_from_dict(document: Any) -> KycService:
    if not isinstance(document, dict):
        raise ValueError("kyc service must be a JSON object")
    return KycService(kyc_addr=_address_from_json(document.get("KycAddr")))


def _dumps(document: Any) -> bytes:
    return json.dumps(document, separators=(",", ":")).encode()


def _submit_args_to_json(args: SubmitArgs) -> bytes:
    return _dumps({"KycInfos": [_info_to_dict(info) for info in args.kyc_infos]})


def _remove_args_to_json(args: RemoveArgs) -> bytes:
    return _dumps({"Addresses": [str(addr) for addr in args.addresses]})


def _submit_args_from_json(data: bytes) -> SubmitArgs:
    document = json.loads(data) or {}
    return SubmitArgs(kyc_infos=[_info_from_dict(item) for item in document.get("KycInfos") or []])


def _remove_args_from_json(data: bytes) -> RemoveArgs:
    document = json.loads(data) or {}
    return RemoveArgs(addresses=[_address_from_json(item) for item in document.get("Addresses") or []])


_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    '"': '\\"',
}


def _decode_rune(data: bytes, start: int) -> tuple[str, int] | None:
    for width in (2, 3, 4):
        try:
            char = data[start:start + width].decode("utf-8")
        except UnicodeDecodeError:
            continue
        if len(char) == 1:
            return char, width
    return None


def _quote(data: bytes) -> str:
    """Quote bytes as a double-quoted string with escapes for unprintable content."""
    out = ['"']
    index = 0
    while index < len(data):
        byte = data[index]
        if byte < 0x80:
            char = chr(byte)
            if char in _ESCAPES:
                out.append(_ESCAPES[char])
            elif 0x20 <= byte < 0x7F:
                out.append(char)
            else:
                out.append(f"\\x{byte:02x}")
            index += 1
            continue
        decoded = _decode_rune(data, index)
        if decoded is None:
            out.append(f"\\x{byte:02x}")
            index += 1
            continue
        char, width = decoded
        if char.isprintable():
            out.append(char)
        elif ord(char) < 0x10000:
            out.append(f"\\u{ord(char):04x}")
        else:
            out.append(f"\\U{ord(char):08x}")
        index += width
    out.append('"')
    return "".join(out)


def _byte_list(data: bytes) -> str:
    return "[" + " ".join(str(byte) for byte in data) + "]"


def _kyc_account(state_ledger: StateLedger) -> Account:
    return state_ledger.get_or_create_account(Address.from_hex(KYC_VERIFY_CONTRACT_ADDR))


class KycVerification(SystemContract):
    """System contract storing KYC verification records."""

    def __init__(self, config: SystemContractConfig | None = None) -> None:
        self.logger = config.logger if config is not None else _log
        self.method_ids = {name: method_id(sig) for name, sig in _METHOD_SIGNATURES.items()}
        self.state_ledger: StateLedger | None = None
        self.account: Account | None = None
        self.current_log: Log | None = None
        self.checked_height: int | None = None

    def reset(self, state_ledger: StateLedger) -> None:
        address = Address.from_hex(KYC_VERIFY_CONTRACT_ADDR)
        self.account = state_ledger.get_or_create_account(address)
        self.state_ledger = state_ledger
        self.current_log = Log(address=address)

    def _bound_account(self) -> Account:
        if self.account is None:
            raise RuntimeError("contract is not bound to a state ledger; call reset first")
        return self.account

    def estimate_gas(self, data: bytes) -> int:
        args = self._get_args(Message(data=data))
        if isinstance(args, SubmitArgs):
            return KYC_SUBMIT_GAS
        if isinstance(args, RemoveArgs):
            return KYC_REMOVE_GAS
        raise AccessError("ACCESS ERROR: unknown access args")

    def check_and_update_state(self, last_height: int, state_ledger: StateLedger) -> None:
        """Record the height checked; KYC state itself needs no per-block update."""
        self.checked_height = last_height

    def run(self, message: Message) -> ExecutionResult:
        if self.state_ledger is None or self.current_log is None:
            raise RuntimeError("contract is not bound to a state ledger; call reset first")
        state_ledger, current_log = self.state_ledger, self.current_log
        try:
            args = self._get_args(message)
            if isinstance(args, SubmitArgs):
                return self.submit(message.sender, args)
            if isinstance(args, RemoveArgs):
                return self.remove(message.sender, args)
            raise AccessError("ACCESS ERROR: Run: unknown access args")
        finally:
            self.save_log(state_ledger, current_log)

    def _get_args(self, message: Message) -> SubmitArgs | RemoveArgs:
        data = message.data
        if data is None:
            raise ExecutionRevertedError()
        method = self._method_name(bytes(data))
        extra = self.parse_args(message, method)
        if method == SUBMIT_METHOD:
            return _submit_args_from_json(extra)
        if method == REMOVE_METHOD:
            return _remove_args_from_json(extra)
        raise AccessError("ACCESS ERROR: getArgs: wrong method name")

    def parse_args(self, message: Message, method_name: str) -> bytes:
        """Return the bytes argument of a call to ``method_name``."""
        data = bytes(message.data or b"")
        if len(data) < 4:
            raise AccessError(
                "ACCESS ERROR: ParseArgs: msg data length is not improperly formatted: "
                f"{_quote(data)} - Bytes: {_byte_list(data)}"
            )
        body = data[4:]
        if method_name not in _METHOD_SIGNATURES:
            raise AccessError(
                f"ACCESS ERROR: ParseArgs: could not locate named method: {method_name}"
            )
        if len(body) % _WORD:
            raise AccessError(
                "ACCESS ERROR: ParseArgs: improperly formatted output: "
                f"{_quote(body)} - Bytes: {_byte_list(body)}"
            )
        return decode_bytes_argument(body)

    def _method_name(self, data: bytes) -> str:
        for name, selector in self.method_ids.items():
            self.logger.debug("getMethodName: method id %s, call id %s", selector.hex(), data[:4].hex())
            if selector == data[:4]:
                return name
        raise AccessError("ACCESS ERROR: getMethodName")

    def submit(self, sender: Address, args: SubmitArgs) -> ExecutionResult:
        account = self._bound_account()
        if not check_in_services(account, str(sender)):
            raise AccessError("ACCESS ERROR: Submit: fail by checking kyc services")
        for info in args.kyc_infos:
            self._check_submit_info(sender, info)
            account.set_state(KYC_INFO_KEY + str(info.user), _dumps(_info_to_dict(info)))
        return ExecutionResult(used_gas=KYC_SUBMIT_GAS, return_data=_submit_args_to_json(args))

    def remove(self, sender: Address, args: RemoveArgs) -> ExecutionResult:
        account = self._bound_account()
        if not check_in_services(account, str(sender)):
            raise AccessError("ACCESS ERROR: Remove: check kyc service fail")
        for address in args.addresses:
            key = KYC_INFO_KEY + str(address)
            stored = account.get_state(key)
            if stored is None:
                continue
            info = _info_from_dict(json.loads(stored))
            if info is None:
                info = KycInfo()
            info.kyc_flag = KycFlag.NOT_VERIFIED
            account.set_state(key, _dumps(_info_to_dict(info)))
        return ExecutionResult(used_gas=KYC_REMOVE_GAS, return_data=_remove_args_to_json(args))

    def save_log(self, state_ledger: StateLedger, log: Log) -> None:
        """Emit ``log`` to the ledger when it carries data."""
        if log.data is not None:
            state_ledger.add_log(
                Log(address=log.address, topics=list(log.topics), data=log.data, removed=log.removed)
            )

    def _check_submit_info(self, sender: Address, info: KycInfo | None) -> None:
        if info is None or str(info.kyc_addr) != str(sender):
            self.logger.debug("kyc info is missing or its kyc address differs from the sender")
            raise CheckSubmitInfoError()
        if time.time() > info.expires and info.expires != -1:
            self.logger.debug("kyc info is expired")
            raise CheckSubmitInfoError()


def verify(state_ledger: StateLedger, address: Address) -> bool:
    """Return True when ``address`` holds a valid verification; raise otherwise."""
    stored = _kyc_account(state_ledger).get_state(KYC_INFO_KEY + str(address))
    if stored is None:
        raise AccessError("ACCESS ERROR: Verify: fail by GetState")
    try:
        info = _info_from_dict(json.loads(stored)) or KycInfo()
    except ValueError as exc:
        raise AccessError("ACCESS ERROR: Verify: fail by json.Unmarshal") from exc
    if info.expires == -1 and info.kyc_flag == KycFlag.VERIFIED:
        return True
    if time.time() > info.expires or info.kyc_flag != KycFlag.VERIFIED:
        raise AccessError("ACCESS ERROR: Verify: fail by checking kyc info")
    return True


def check_in_services(account: Account, address: str) -> bool:
    """Return whether ``address`` is a registered KYC service in ``account``."""
    stored = account.get_state(KYC_SERVICES_KEY)
    if stored is None:
        return False
    try:
        services = [_service_from_dict(item) for item in json.loads(stored) or []]
    except (ValueError, TypeError):
        return False
    if not services:
        return False
    return is_in_slice(address, [str(service.kyc_addr) for service in services])


def add_and_remove_kyc_service(
    state_ledger: StateLedger, modify_type: ModifyType, services: list[KycService]
) -> None:
    existing = get_kyc_services(state_ledger)
    if modify_type == ModifyType.ADD_KYC_SERVICE:
        by_address: dict[Address, KycService] = {}
        for service in [*existing, *services]:
            by_address[service.kyc_addr] = service
        existing = list(by_address.values())
    elif modify_type == ModifyType.REMOVE_KYC_SERVICE:
        if not existing:
            raise AccessError("ACCESS ERROR: remove kyc services from an empty list")
        known = {service.kyc_addr for service in existing}
        existing = [service for service in services if service.kyc_addr not in known]
    set_kyc_service(state_ledger, existing)


def set_kyc_service(state_ledger: StateLedger, services: list[KycService]) -> None:
    _kyc_account(state_ledger).set_state(
        KYC_SERVICES_KEY, _dumps([_service_to_dict(service) for service in services])
    )


def get_kyc_services(state_ledger: StateLedger) -> list[KycService]:
    stored = _kyc_account(state_ledger).get_state(KYC_SERVICES_KEY)
    if stored is None:
        return []
    return [_service_from_dict(item) for item in json.loads(stored) or []]


def init_kyc_services_and_kyc_infos(
    state_ledger: StateLedger, verified_users: list[str] | None, kyc_services: list[str] | None
) -> None:
    """Mark every given address as verified forever and register the KYC services."""
    account = _kyc_account(state_ledger)
    verified_users = list(verified_users or [])
    kyc_services = list(kyc_services or [])
    for address_text in sorted({*verified_users, *kyc_services}):
        address = Address.from_hex(address_text)
        info = KycInfo(user=address, kyc_addr=address, kyc_flag=KycFlag.VERIFIED, expires=-1)
        account.set_state(KYC_INFO_KEY + address_text, _dumps(_info_to_dict(info)))
    services = [KycService(kyc_addr=Address.from_hex(text)) for text in kyc_services]
    account.set_state(
        KYC_SERVICES_KEY, _dumps([_service_to_dict(service) for service in services])
    )
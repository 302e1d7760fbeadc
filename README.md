# axsyscontract

Built-in system contracts for a ledger, working on a simple in-memory
key-value account state.

- `axsyscontract.common`: `Address` (20 bytes, printed in checksummed hex),
  `Message`, `ExecutionResult`, `Log`, the in-memory `StateLedger` and
  `Account`, the `SystemContract` interface, `keccak256` and the well-known
  contract addresses such as `EPOCH_MANAGER_CONTRACT_ADDR` and
  `KYC_VERIFY_CONTRACT_ADDR`.
- `axsyscontract.epoch_manager`: stores the current, next and historical
  epoch records and moves the chain into a new epoch.
- `axsyscontract.kyc_verification`: registered KYC services submit and revoke
  verification records for user addresses.
- `axsyscontract.abi`: encodes and decodes calls that take a single `bytes`
  argument (`method_id`, `encode_bytes_call`, `decode_bytes_argument`).
- `axsyscontract.contract`: finds the system contract that lives at an address.

## Installation

```
pip install axsyscontract
```

## Usage

### Epochs

```python
from axsyscontract.common import StateLedger
from axsyscontract.epoch_manager import (
    EpochInfo, init_epoch_info, get_current_epoch_info,
    get_next_epoch_info, get_epoch_info, turn_into_new_epoch,
)

ledger = StateLedger()
init_epoch_info(ledger, EpochInfo(epoch=1, start_block=1, epoch_period=100))

get_current_epoch_info(ledger).epoch     # 1
get_next_epoch_info(ledger).start_block  # 101
turn_into_new_epoch(ledger).epoch        # 2 (now the current epoch)
get_epoch_info(ledger, 2).start_block    # 101
```

A missing record raises `EpochNotFoundError`. `EpochInfo` is stored as JSON;
fields it does not know are kept in `EpochInfo.extra` and written back.
The `EpochManager` contract accepts no calls: its `run` and `estimate_gas`
raise `RuntimeError("unsupported method")`.

### KYC verification

```python
from axsyscontract.common import Address, StateLedger
from axsyscontract.kyc_verification import (
    KycInfo, KycFlag, KycVerification, RemoveArgs, SubmitArgs,
    init_kyc_services_and_kyc_infos, verify,
)

ledger = StateLedger()
service = "0x1210000000000000000000000000000000000000"
user = "0x1230000000000000000000000000000000000000"
init_kyc_services_and_kyc_infos(ledger, [service], [service])

contract = KycVerification()
contract.reset(ledger)
contract.submit(
    Address.from_hex(service),
    SubmitArgs([KycInfo(Address.from_hex(user), Address.from_hex(service), KycFlag.VERIFIED, -1)]),
)
verify(ledger, Address.from_hex(user))  # True

contract.remove(Address.from_hex(service), RemoveArgs([Address.from_hex(user)]))
# verify(...) now raises AccessError: the record is marked NOT_VERIFIED
```

An `expires` of `-1` means the record never expires; otherwise it is a Unix
time in seconds. Only a registered service may submit or remove, and only
records whose `kyc_addr` is its own address. A failed check raises
`AccessError`, or `CheckSubmitInfoError` for an invalid record.

The list of services is managed with `get_kyc_services`, `set_kyc_service`
and `add_and_remove_kyc_service(ledger, ModifyType.ADD_KYC_SERVICE, services)`
(or `ModifyType.REMOVE_KYC_SERVICE`; removing from an empty list raises
`AccessError`).

#### Raw calls

A contract can also be driven with an ABI-encoded message:

```python
import json
from axsyscontract.abi import encode_bytes_call
from axsyscontract.common import Message

payload = json.dumps({"KycInfos": [
    {"User": user, "KycAddr": service, "KycFlag": 1, "Expires": -1},
]}).encode()
message = Message(sender=Address.from_hex(service),
                  data=encode_bytes_call("Submit(bytes)", payload))
contract.reset(ledger)
result = contract.run(message)
result.used_gas  # 30000
```

`Remove(bytes)` takes `{"Addresses": [...]}`. `estimate_gas(data)` returns
the gas of a call without running it. Message data of `None` raises
`ExecutionRevertedError`; an unknown selector or malformed data raises
`AccessError` or `AbiError`.

### Looking up a contract

```python
from axsyscontract.common import Address
from axsyscontract.contract import get_system_contract, initialize

initialize(my_logger)  # logger handed to contracts created afterwards
contract = get_system_contract(Address.from_hex("0x0000000000000000000000000000000000001004"))
```

`get_system_contract` returns a fresh `KycVerification` or `EpochManager`
for their addresses and `None` for any other address (or `None`).
`check_and_update_all_state(height, ledger)` calls `check_and_update_state`
on a fresh instance of each registered contract.

## What this package does not do

- It runs no EVM and executes no blocks or ordinary transactions; only the
  system contracts above are provided.
- Only the epoch manager and KYC verification contracts are registered; the
  node manager, council manager and KYC service addresses are defined as
  constants but have no contract behind them.
- `StateLedger` keeps state in memory only; nothing is persisted, and there
  are no snapshots, commits or state roots.
- There is no command-line tool.

## Tests

```
pip install -e ".[test]"
pytest
```
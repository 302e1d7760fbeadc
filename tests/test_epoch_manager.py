import pytest

from axsyscontract.common import Message, StateLedger, SystemContractConfig
from axsyscontract.epoch_manager import (
    EpochInfo,
    EpochManager,
    EpochNotFoundError,
    get_current_epoch_info,
    get_epoch_info,
    get_next_epoch_info,
    init_epoch_info,
    turn_into_new_epoch,
)


@pytest.fixture
def ledger():
    return StateLedger()


def test_epoch_manager_rejects_calls(ledger):
    manager = EpochManager(SystemContractConfig())
    manager.reset(ledger)
    assert manager.account is not None
    with pytest.raises(RuntimeError, match="unsupported method"):
        manager.estimate_gas(b"")
    with pytest.raises(RuntimeError, match="unsupported method"):
        manager.run(Message())


def test_epoch_lifecycle(ledger):
    manager = EpochManager(SystemContractConfig())
    manager.check_and_update_state(0, ledger)
    assert ledger.accounts == {}

    genesis = EpochInfo(epoch=1, epoch_period=100, start_block=1)
    init_epoch_info(ledger, genesis)

    current = get_current_epoch_info(ledger)
    assert current.epoch == 1
    assert current.start_block == 1

    following = get_next_epoch_info(ledger)
    assert following.epoch == 2
    assert following.start_block == 101

    assert get_epoch_info(ledger, 1).epoch == 1
    with pytest.raises(EpochNotFoundError):
        get_epoch_info(ledger, 2)

    new_current = turn_into_new_epoch(ledger)
    assert new_current.epoch == 2
    assert new_current.start_block == 101

    current = get_current_epoch_info(ledger)
    assert current.epoch == 2
    assert current.start_block == 101

    following = get_next_epoch_info(ledger)
    assert following.epoch == 3
    assert following.start_block == 201

    assert get_epoch_info(ledger, 2).epoch == 2
    with pytest.raises(EpochNotFoundError):
        get_epoch_info(ledger, 3)


def test_init_does_not_mutate_input(ledger):
    genesis = EpochInfo(epoch=1, epoch_period=100, start_block=1)
    init_epoch_info(ledger, genesis)
    assert genesis == EpochInfo(epoch=1, epoch_period=100, start_block=1)


def test_missing_epoch_info_raises(ledger):
    with pytest.raises(EpochNotFoundError):
        get_next_epoch_info(ledger)
    with pytest.raises(EpochNotFoundError):
        get_current_epoch_info(ledger)
    with pytest.raises(EpochNotFoundError):
        turn_into_new_epoch(ledger)


def test_epoch_info_json_roundtrip_keeps_extra_fields():
    info = EpochInfo(epoch=4, epoch_period=10, start_block=31, extra={"version": 2})
    restored = EpochInfo.from_json(info.to_json())
    assert restored == info


def test_epoch_info_clone_is_independent():
    info = EpochInfo(epoch=1, epoch_period=5, start_block=1, extra={"nodes": ["a"]})
    copy = info.clone()
    copy.extra["nodes"].append("b")
    copy.epoch = 9
    assert info.extra == {"nodes": ["a"]}
    assert info.epoch == 1


def test_epoch_info_from_bad_json():
    with pytest.raises(ValueError):
        EpochInfo.from_json(b"[1, 2]")
    with pytest.raises(ValueError):
        EpochInfo.from_json(b"not json")


def test_extra_fields_survive_epoch_turn(ledger):
    init_epoch_info(ledger, EpochInfo(epoch=1, epoch_period=3, start_block=1, extra={"tag": "x"}))
    assert turn_into_new_epoch(ledger).extra == {"tag": "x"}
    assert get_next_epoch_info(ledger).extra == {"tag": "x"}
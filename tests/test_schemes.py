from __future__ import annotations

import pickle

import numpy as np
import pytest

from slottedra.errors import ConfigurationError, PreconditionError
from slottedra.schemes import CRDSA, EMPTY_SLOT, MF_CRDSA, FirstBlocks, RA4Step, SlottedALOHA


@pytest.mark.parametrize("replicas, nslots", [(1, 1), (2, 2), (3, 5), (4, 100)])
def test_crdsa_replicas_use_distinct_slots(rng, replicas, nslots):
    scheme = CRDSA(max_replicas=replicas)
    for _ in range(200):
        slots = scheme.replica_slots(nslots, rng)
        assert len(slots) == replicas
        assert len(set(slots.tolist())) == replicas
        assert slots.min() >= 1
        assert slots.max() <= nslots


def test_crdsa_fills_the_provided_buffer(rng):
    out = np.full(3, 99, dtype=np.int64)
    slots = CRDSA(3).replica_slots(10, rng, out=out)
    assert slots is out
    assert set(out.tolist()) <= set(range(1, 11))


def test_crdsa_rejects_more_replicas_than_slots():
    with pytest.raises(ConfigurationError, match="cannot exceed"):
        CRDSA(3).check_nslots(2)


def test_crdsa_requires_nslots():
    with pytest.raises(ConfigurationError, match="nslots"):
        CRDSA(2).check_nslots(None)
    with pytest.raises(PreconditionError, match="frame size"):
        CRDSA(2).ra_slots(None)
    with pytest.raises(PreconditionError, match="frame size"):
        CRDSA(2).user_slots(None)
    assert CRDSA(2).ra_slots(12) == CRDSA(2).user_slots(12) == 12


@pytest.mark.parametrize("value", [0, -2, 1.5, True])
def test_crdsa_rejects_invalid_replica_counts(value):
    with pytest.raises(ConfigurationError):
        CRDSA(value)


def test_slotted_aloha_sends_one_replica(rng):
    scheme = SlottedALOHA()
    assert scheme.max_replicas == 1
    assert len(scheme.replica_slots(10, rng)) == 1
    with pytest.raises(ConfigurationError):
        SlottedALOHA(2)


def test_mf_crdsa_default_blocks(rng):
    scheme = MF_CRDSA(max_replicas=2, n_time_slots=3)
    assert scheme.block_size(9) == 3
    for _ in range(100):
        first, second = scheme.replica_slots(9, rng).tolist()
        assert 1 <= first <= 3
        assert 4 <= second <= 6


def test_mf_crdsa_defaults_to_one_block_per_replica():
    scheme = MF_CRDSA(max_replicas=3)
    assert scheme.n_time_slots == 3
    assert scheme.time_slots_function == FirstBlocks(3)
    assert pickle.loads(pickle.dumps(scheme)) == scheme


def test_mf_crdsa_replicas_stay_in_their_blocks(rng):
    def pick(generator):
        return generator.choice(np.arange(1, 5), size=2, replace=False)

    scheme = MF_CRDSA(max_replicas=2, n_time_slots=4, time_slots_function=pick)
    size = scheme.block_size(20)
    for _ in range(200):
        slots = scheme.replica_slots(20, rng)
        blocks = [(slot - 1) // size + 1 for slot in slots.tolist()]
        assert len(set(blocks)) == 2
        assert all(1 <= block <= 4 for block in blocks)


def test_mf_crdsa_more_replicas_than_time_slots():
    with pytest.raises(ConfigurationError, match="cannot be greater than the number of time slots"):
        MF_CRDSA(max_replicas=3, n_time_slots=2)


def test_mf_crdsa_frame_must_split_in_blocks():
    with pytest.raises(ConfigurationError, match="multiple"):
        MF_CRDSA(max_replicas=2, n_time_slots=3).check_nslots(10)


@pytest.mark.parametrize(
    "blocks, message",
    [((1, 1), "repeated"), ((1,), "expected 2"), ((1, 4), "outside")],
)
def test_mf_crdsa_validates_time_slots_function(rng, blocks, message):
    scheme = MF_CRDSA(max_replicas=2, n_time_slots=3, time_slots_function=lambda _: blocks)
    with pytest.raises(ConfigurationError, match=message):
        scheme.replica_slots(9, rng)


def test_ra4step_geometry():
    scheme = RA4Step(msg1_occasions=2, msg3_occasions=3, freq_slots=4)
    assert scheme.max_replicas == 1
    assert scheme.msg1_slots == 8
    assert scheme.msg3_slots == 12
    assert scheme.ra_slots(None) == 8
    assert scheme.user_slots(None) == 12
    assert scheme.decoded_cap() == 12
    assert RA4Step(limit_packets=False).decoded_cap() is None


def test_ra4step_frame_size_is_derived():
    scheme = RA4Step(msg1_occasions=4)
    assert scheme.check_nslots(None) is None
    with pytest.raises(ConfigurationError, match="must not be provided"):
        scheme.check_nslots(4)


def test_ra4step_draws_over_msg1_slots(rng):
    scheme = RA4Step(msg1_occasions=4, freq_slots=2)
    for _ in range(50):
        (slot,) = scheme.replica_slots(8, rng).tolist()
        assert 1 <= slot <= 8
    with pytest.raises(PreconditionError):
        scheme.replica_slots(5, rng)


def test_output_buffer_is_cleared(rng):
    out = np.array([7, 7], dtype=np.int64)
    slots = SlottedALOHA()._output(out)
    assert slots.tolist() == [EMPTY_SLOT, EMPTY_SLOT]

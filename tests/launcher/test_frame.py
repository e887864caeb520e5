from __future__ import annotations

import math

import numpy as np
import pytest

from slottedra.distributions import Dirac
from slottedra.errors import PreconditionError
from slottedra.launcher.frame import (
    FrameWorkspace,
    UserRealization,
    allocate_users,
    build_frame,
)
from slottedra.power import SamePower
from slottedra.schemes import CRDSA, EMPTY_SLOT, RA4Step


def test_user_realization_skips_empty_entries():
    user = UserRealization(np.array([3, EMPTY_SLOT]), np.array([2.0, math.nan]))
    assert user.max_replicas == 2
    assert user.n_replicas == 1
    assert user.replicas() == [(3, 2.0)]


def test_allocate_users_places_powers():
    users = [
        UserRealization(np.array([1, 3]), np.array([2.0, 2.0])),
        UserRealization(np.array([2, EMPTY_SLOT]), np.array([5.0, math.nan])),
    ]
    matrix = allocate_users(np.zeros((2, 3)), users)
    assert matrix.tolist() == [[2.0, 0.0, 2.0], [0.0, 5.0, 0.0]]


def test_build_frame_crdsa(rng):
    frame = build_frame(CRDSA(2), SamePower, Dirac(3.0), 5, 10, rng)
    assert frame.nusers == 5
    assert frame.nslots == 10
    assert frame.power_matrix.shape == (5, 10)
    for row, user in zip(frame.power_matrix, frame.users):
        assert np.count_nonzero(row) == 2
        assert row.sum() == pytest.approx(6.0)
        for slot, power in user.replicas():
            assert row[slot - 1] == power


def test_workspace_grows_and_resets(rng):
    workspace = FrameWorkspace(2, 10, capacity=2)
    frame = build_frame(CRDSA(2), SamePower, Dirac(1.0), 7, 10, rng, workspace)
    assert workspace.capacity >= 7
    assert frame.power_matrix.sum() == pytest.approx(14.0)

    frame = build_frame(CRDSA(2), SamePower, Dirac(1.0), 3, 10, rng, workspace)
    assert frame.power_matrix.shape == (3, 10)
    assert frame.power_matrix.sum() == pytest.approx(6.0)


def test_workspace_geometry_mismatch(rng):
    with pytest.raises(PreconditionError):
        build_frame(CRDSA(2), SamePower, Dirac(1.0), 3, 10, rng, FrameWorkspace(2, 12))
    with pytest.raises(PreconditionError):
        build_frame(CRDSA(2), SamePower, Dirac(1.0), 3, 10, rng, FrameWorkspace(3, 10))


def test_build_frame_ra4step(rng):
    scheme = RA4Step(msg1_occasions=2, freq_slots=2)
    frame = build_frame(scheme, SamePower, Dirac(1.0), 4, scheme.ra_slots(None), rng)
    assert frame.power_matrix.shape == (4, 4)
    assert [np.count_nonzero(row) for row in frame.power_matrix] == [1, 1, 1, 1]

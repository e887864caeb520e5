import os
import random
import sys

import numpy as np
import pytest

# Ensure the project root is on the module search path when the package is not
# installed. This allows ``import slottedra`` to succeed during test
# collection without requiring an editable installation.
ROOT_DIR = os.path.dirname(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from traffic.rng import create_generator  # noqa: E402


@pytest.fixture(autouse=True)
def _set_seed():
    random.seed(1)
    np.random.seed(1)


@pytest.fixture
def rng():
    return create_generator(1234)

import matplotlib

matplotlib.use("Agg")

import pytest

from mpc_control.config import ControllerConfig


@pytest.fixture
def config() -> ControllerConfig:
    # Generous time budget so slow machines still converge
    return ControllerConfig(solver_max_time=5.0)

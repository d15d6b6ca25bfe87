import numpy as np
import pytest

from clear_lair import LinearModel, SGDTrainer, UpdateParams


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def bulk_samples():
    """Three samples of y = 2*x0 + x1 + 1, one sample per column."""
    x = np.array([[2.0, 3.0, 4.0],
                  [1.0, 4.0, 5.0]])
    y = np.array([[6.0, 11.0, 14.0]])
    return x, y


@pytest.fixture
def fitted_linear(rng, bulk_samples):
    """LinearModel(2 -> 1) fit exactly to bulk_samples, trained with small SGD steps."""
    trainer = SGDTrainer(UpdateParams(step_size=0.01))
    model = LinearModel.new_random(2, 1, trainer, rng=rng)
    model.update_bulk(*bulk_samples)
    return model

import logging

import numpy as np
import pytest

from clear_lair import Fxx, Model, as_matrix, as_vector, has_nan
from clear_lair.model import check_finite


class EchoModel(Model):
    """Predicts its input and returns the error it receives."""

    def __init__(self, size):
        super().__init__(size, size)
        self.received = None

    def predict(self, x):
        return as_vector(x, self.num_inputs)

    def backpropagate(self, x, de_dy):
        self.received = np.array(de_dy)
        return self.received


def test_update_error_is_predicted_minus_observed():
    model = EchoModel(2)
    de_dx = model.update([1.0, 5.0], [3.0, 2.0])
    np.testing.assert_array_equal(model.received, [-2.0, 3.0])
    np.testing.assert_array_equal(de_dx, [-2.0, 3.0])


def test_base_model_is_abstract():
    model = Model(1, 1)
    with pytest.raises(NotImplementedError):
        model.predict([0.0])
    with pytest.raises(NotImplementedError):
        model.backpropagate([0.0], [0.0])


def test_rejects_empty_shape():
    with pytest.raises(ValueError):
        Model(0, 1)


def test_as_vector_converts_and_checks():
    v = as_vector([1, 2, 3], 3)
    assert v.dtype == Fxx
    assert v.shape == (3,)
    with pytest.raises(ValueError, match="Expected 2 values"):
        as_vector([1, 2, 3], 2)


def test_as_matrix_checks_shape():
    assert as_matrix([[1, 2, 3]], 1, 3).shape == (1, 3)
    with pytest.raises(ValueError):
        as_matrix([[1, 2, 3]], 3, 1)


def test_has_nan():
    assert not has_nan(np.array([0.0, 1.0]))
    assert has_nan(np.array([0.0, np.nan]))
    assert has_nan(np.array([np.inf, 1.0]))


def test_check_finite_warns_without_changing_values(caplog):
    values = np.array([1.0, np.nan])
    with caplog.at_level(logging.WARNING):
        check_finite(values, "test values")
    assert "NaN or Inf detected in test values" in caplog.text
    assert np.isnan(values[1])

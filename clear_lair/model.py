"""
Model contract and numeric containers.

Every model maps a fixed-length input vector (num_inputs values) to a fixed-length
output vector (num_outputs values). Vectors are 1-D float32 numpy arrays; weight
matrices are 2-D float32 arrays in row-major (C) order.

Each model implements its own backward formula by hand:
    predict(x)              -> y
    backpropagate(x, dE/dy) -> dE/dx   (and updates trainable parameters)
    update(x, y_observed)   -> dE/dx   (predict, err = y_hat - y_observed, backpropagate)
"""

import numpy as np
from typing import Sequence, Union
import logging

# Scalar type used for all vectors and matrices.
Fxx = np.float32

ArrayLike = Union[np.ndarray, Sequence[float]]


def as_vector(values: ArrayLike, size: int, name: str = "vector") -> np.ndarray:
    """Converts values to a 1-D float32 vector of the given length.

    Args:
        values: Anything numpy can turn into an array with `size` elements.
        size: Expected number of elements.
        name: Name used in the error message.

    Returns:
        A 1-D float32 array of shape (size,).

    Raises:
        ValueError: If the number of elements does not match.
    """
    vec = np.asarray(values, dtype=Fxx)
    if vec.ndim != 1:
        vec = vec.reshape(-1)
    if vec.shape[0] != size:
        raise ValueError(f"{name}: Expected {size} values, got {vec.shape[0]}")
    return vec


def as_matrix(values: ArrayLike, rows: int, cols: int, name: str = "matrix") -> np.ndarray:
    """Converts values to a (rows, cols) float32 matrix.

    Raises:
        ValueError: If the shape does not match.
    """
    mat = np.asarray(values, dtype=Fxx)
    if mat.shape != (rows, cols):
        raise ValueError(f"{name}: Expected shape ({rows}, {cols}), got {mat.shape}")
    return mat


def has_nan(x: np.ndarray) -> bool:
    """True if any element is NaN or infinite."""
    return bool(np.any(~np.isfinite(x)))


class Model:
    """
    Base class for all models.

    Subclasses set their shape through this constructor and implement `predict`
    and `backpropagate`. The shape never changes after construction.
    """

    def __init__(self, num_inputs: int, num_outputs: int):
        if num_inputs < 1 or num_outputs < 1:
            raise ValueError(
                f"{self.__class__.__name__}: dimensions must be positive, "
                f"got {num_inputs} inputs and {num_outputs} outputs"
            )
        self._num_inputs = int(num_inputs)
        self._num_outputs = int(num_outputs)

    @property
    def num_inputs(self) -> int:
        return self._num_inputs

    @property
    def num_outputs(self) -> int:
        return self._num_outputs

    def predict(self, x: ArrayLike) -> np.ndarray:
        """Computes the output for input x. Does not modify the model."""
        raise NotImplementedError("Each model must implement its own predict.")

    def backpropagate(self, x: ArrayLike, de_dy: ArrayLike) -> np.ndarray:
        """
        Given dE/dy, the error gradient with respect to this model's output at x,
        returns dE/dx. Models with trainable parameters update them as a side effect.
        """
        raise NotImplementedError("Each model must implement its own backpropagate.")

    def update(self, x: ArrayLike, y: ArrayLike) -> np.ndarray:
        """
        Trains on one observation (x, y).

        The error is y_hat - y (predicted minus observed); every backward formula
        in this package assumes that sign.

        Returns:
            The gradient of the error with respect to x.
        """
        x = as_vector(x, self.num_inputs, f"{self.__class__.__name__} input")
        y = as_vector(y, self.num_outputs, f"{self.__class__.__name__} target")
        yh = self.predict(x)
        err = yh - y
        return self.backpropagate(x, err)

    def __repr__(self):
        return f"{self.__class__.__name__}(num_inputs={self.num_inputs}, num_outputs={self.num_outputs})"


def check_finite(values: np.ndarray, what: str) -> None:
    """Logs a warning when values contain NaN or infinity. Values are left as they are."""
    if has_nan(values):
        logging.warning(f"NaN or Inf detected in {what}; the step size may be too large.")

import numpy as np
from typing import Union
import logging

from .model import ArrayLike, Fxx, Model, as_vector, check_finite

# exp(80) still fits in float32; beyond that the sigmoid is 0 or 1 to float32 precision anyway.
_EXP_LIMIT = 80.0


def sigmoid(x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Logistic function 1 / (1 + e^-x), clipped for numerical stability."""
    clipped_x = np.clip(x, -_EXP_LIMIT, _EXP_LIMIT)
    return 1.0 / (1.0 + np.exp(-clipped_x))


def dsigmoid(x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Derivative of the logistic function at x, as sigmoid(x) * sigmoid(-x).

    Algebraically equal to sigmoid(x) * (1 - sigmoid(x)), but does not lose
    precision to cancellation when sigmoid(x) is close to 1.
    """
    return sigmoid(x) * sigmoid(-x)


class ModelDecorator(Model):
    """
    Base class for elementwise nonlinearities wrapped around another model.

    The decorator has the same shape as the model it wraps and holds it by
    reference, so training through the decorator trains the inner model.
    """

    def __init__(self, model: Model):
        super().__init__(model.num_inputs, model.num_outputs)
        self.model = model
        logging.debug(f"{self.__class__.__name__} wrapping {model!r}")

    def __repr__(self):
        return f"{self.__class__.__name__}({self.model!r})"


class ReLU(ModelDecorator):
    """Rectified linear unit applied to the output of the inner model.

    Mathematical form:
        predict: y_i = max(0, p_i) where p = inner.predict(x)
        backward: dE/dp_i = dE/dy_i if p_i > 0 else 0
    """

    def predict(self, x: ArrayLike) -> np.ndarray:
        y = self.model.predict(x)
        return np.maximum(y, Fxx(0.0))

    def backpropagate(self, x: ArrayLike, de_dy: ArrayLike) -> np.ndarray:
        logging.debug(f"relu backprop {self.num_inputs}->{self.num_outputs}")
        de_dy = as_vector(de_dy, self.num_outputs, "ReLU output gradient")
        p = self.model.predict(x)
        de_dp = np.where(p > 0, de_dy, Fxx(0.0)).astype(Fxx)
        return self.model.backpropagate(x, de_dp)

    def update(self, x: ArrayLike, y: ArrayLike) -> np.ndarray:
        """
        Trains the inner model towards a corrected target rather than a thresholded error.

        Outputs where both the inner prediction and the target are non-positive are
        already right after clipping, so they keep the inner prediction as target (zero
        error). Every other output gets the observed target.
        """
        y = as_vector(y, self.num_outputs, "ReLU target")
        yh = self.model.predict(x)
        correct = (yh <= 0) & (y <= 0)
        target = np.where(correct, yh, y).astype(Fxx)
        return self.model.update(x, target)


class Logit(ModelDecorator):
    """Logistic (sigmoid) squashing of the inner model's output.

    Mathematical form:
        predict: y_i = sigmoid(p_i) where p = inner.predict(x)
        backward: dE/dp_i = sigmoid(p_i) * sigmoid(-p_i) * dE/dy_i
    """

    def predict(self, x: ArrayLike) -> np.ndarray:
        y = sigmoid(self.model.predict(x)).astype(Fxx)
        check_finite(y, "logit prediction")
        return y

    def backpropagate(self, x: ArrayLike, de_dy: ArrayLike) -> np.ndarray:
        logging.debug(f"logit backprop {self.num_inputs}->{self.num_outputs}")
        de_dy = as_vector(de_dy, self.num_outputs, "Logit output gradient")
        p = self.model.predict(x)
        de_dp = (dsigmoid(p) * de_dy).astype(Fxx)
        check_finite(de_dp, "logit backpropagated error")
        return self.model.backpropagate(x, de_dp)


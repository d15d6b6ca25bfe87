"""
Gradient trainers: strategies that turn a parameter gradient into new parameter values.

A trainer receives the current weights W (output_size, input_size) and biases b
(output_size,) together with the gradients dE/dW and dE/db, and answers either

    Updated(W', b')   - the model should replace its parameters, or
    DEFERRED          - the model keeps its parameters for now.

Trainers keep mutable state (gradient buffers, velocity) and therefore belong to
exactly one owner: the LinearModel they train, or the trainer that wraps them.
"""

import numpy as np
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple, Union
import logging

from .model import Fxx, check_finite


@dataclass(frozen=True)
class UpdateParams:
    """Learning rate and L2 weight decay shared by the SGD update rule."""
    step_size: float
    l2_reg: float = 0.0


class Updated(NamedTuple):
    """New parameter values returned by a trainer."""
    weights: np.ndarray
    biases: np.ndarray


class Deferred:
    """Signals that a trainer did not produce new parameters on this call."""

    def __repr__(self):
        return "DEFERRED"


DEFERRED = Deferred()

TrainResult = Union[Updated, Deferred]


class GradientTrainer:
    """Base class for all gradient trainers."""

    def __init__(self):
        self._owner = None

    def attach(self, owner) -> None:
        """
        Binds this trainer to its single owner.

        Raises:
            ValueError: If the trainer already belongs to a different owner.
        """
        if self._owner is not None and self._owner is not owner:
            raise ValueError(
                f"{self.__class__.__name__} is already attached to {self._owner!r}; "
                f"each trainer can serve only one owner"
            )
        self._owner = owner

    def train(
        self,
        weights: np.ndarray,
        biases: np.ndarray,
        gradients: np.ndarray,
        bias_gradients: np.ndarray,
    ) -> TrainResult:
        """Returns Updated(new_weights, new_biases) or DEFERRED."""
        raise NotImplementedError("Each trainer must implement its own train.")


class SGDTrainer(GradientTrainer):
    """
    Plain stochastic gradient descent, applied at every call.

    The step is normalized by the layer fan-in M:
        step = step_size / M
        W'   = (1 - l2_reg) * W - step * dE/dW
        b'   = b - step * dE/db
    """

    def __init__(self, update_params: UpdateParams):
        super().__init__()
        self.update_params = update_params

    def train(self, weights, biases, gradients, bias_gradients) -> Updated:
        num_inputs = weights.shape[1]
        step_size = Fxx(self.update_params.step_size / num_inputs)
        decay = Fxx(1.0 - self.update_params.l2_reg)

        new_biases = (biases - step_size * bias_gradients).astype(Fxx)
        new_weights = (decay * weights - step_size * gradients).astype(Fxx)

        check_finite(new_weights, "SGD updated weights")
        logging.debug(
            f"SGD update ({weights.shape[0]}x{num_inputs}) "
            f"|w|={np.linalg.norm(new_weights):.6g} |b|={np.linalg.norm(new_biases):.6g}"
        )
        return Updated(new_weights, new_biases)

    def __repr__(self):
        return f"SGDTrainer({self.update_params})"


class BatchTrainer(GradientTrainer):
    """
    Applies the mean of the last `batch_size` gradients once every `batch_size` calls.

    Gradients are stored in a circular buffer. Calls that do not complete a batch
    return DEFERRED. The call that completes it resets the position, averages the
    buffer and hands the mean gradient to the wrapped trainer (SGD by default).
    """

    def __init__(
        self,
        update_params: UpdateParams,
        batch_size: int,
        trainer: Optional[GradientTrainer] = None,
    ):
        super().__init__()
        if batch_size < 1:
            raise ValueError(f"BatchTrainer: batch_size must be positive, got {batch_size}")
        self.batch_size = int(batch_size)
        self.batch_num = 0
        self.grads: List[Optional[Tuple[np.ndarray, np.ndarray]]] = [None] * self.batch_size
        self.trainer = trainer if trainer is not None else SGDTrainer(update_params)
        self.trainer.attach(self)

    def train(self, weights, biases, gradients, bias_gradients) -> TrainResult:
        self.grads[self.batch_num] = (np.array(gradients, dtype=Fxx), np.array(bias_gradients, dtype=Fxx))
        self.batch_num += 1
        if self.batch_num < self.batch_size:
            return DEFERRED

        self.batch_num = 0
        mean_gradients = np.mean([g for g, _ in self.grads], axis=0).astype(Fxx)
        mean_bias_gradients = np.mean([bg for _, bg in self.grads], axis=0).astype(Fxx)
        logging.debug(f"Batch of {self.batch_size} gradients complete, applying mean gradient")
        return self.trainer.train(weights, biases, mean_gradients, mean_bias_gradients)

    def __repr__(self):
        return f"BatchTrainer(batch_size={self.batch_size}, trainer={self.trainer!r})"


class MomentumTrainer(GradientTrainer):
    """
    Mixes the previous parameter step into the next one (Goodfellow et al., 8.3.2).

    The wrapped trainer returns updated values, not gradients, so its step is
    recovered as (W' - W, b' - b). The first step is taken as-is and becomes the
    velocity; afterwards
        velocity = momentum * velocity + step
        W'       = W + velocity
    and likewise for the biases. DEFERRED from the wrapped trainer is passed through
    and leaves the velocity untouched.
    """

    def __init__(self, momentum: float, trainer: GradientTrainer):
        super().__init__()
        self.momentum = Fxx(momentum)
        self.velocity: Optional[Tuple[np.ndarray, np.ndarray]] = None
        self.trainer = trainer
        self.trainer.attach(self)

    def train(self, weights, biases, gradients, bias_gradients) -> TrainResult:
        result = self.trainer.train(weights, biases, gradients, bias_gradients)
        if not isinstance(result, Updated):
            return DEFERRED

        step_w = result.weights - weights
        step_b = result.biases - biases
        if self.velocity is None:
            self.velocity = (step_w, step_b)
            return result

        vw, vb = self.velocity
        vw = (self.momentum * vw + step_w).astype(Fxx)
        vb = (self.momentum * vb + step_b).astype(Fxx)
        self.velocity = (vw, vb)
        return Updated((weights + vw).astype(Fxx), (biases + vb).astype(Fxx))

    def __repr__(self):
        return f"MomentumTrainer(momentum={self.momentum}, trainer={self.trainer!r})"

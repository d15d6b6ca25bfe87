import numpy as np
from typing import Optional, Tuple
import logging

from .model import ArrayLike, Fxx, Model, as_matrix, as_vector
from .trainer import GradientTrainer, Updated


class SingularMatrixError(ValueError):
    """Raised by LinearModel.update_bulk when the sample covariance cannot be inverted."""


class LinearModel(Model):
    """
    Affine model y = W @ x + b with a trainable weight matrix and bias vector.

    Key Attributes:
        weights (np.ndarray): Weight matrix of shape (num_outputs, num_inputs). Row i holds
                              the weights connecting every input to output i.
        biases (np.ndarray): Bias vector of shape (num_outputs,).
        trainer (GradientTrainer): Strategy that turns the gradients computed in
                                   `backpropagate` into new weights and biases. The trainer
                                   belongs to this model alone.
    """

    def __init__(
        self,
        num_inputs: int,
        num_outputs: int,
        trainer: GradientTrainer,
        weight_init: str = 'random',
        std: float = 1.0,
        initial_weights: Optional[np.ndarray] = None,  # Expected shape (num_outputs, num_inputs)
        initial_biases: Optional[np.ndarray] = None,   # Expected shape (num_outputs,)
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Initializes the model.

        Args:
            num_inputs: Number of input values (M).
            num_outputs: Number of output values (N).
            trainer: Gradient trainer used by `backpropagate`.
            weight_init: Parameter initialization strategy: 'random' (uniform in [0, 1)),
                         'normal' (normal with mean 0 and standard deviation `std`) or
                         'xavier' (Glorot uniform). Biases follow the same strategy except
                         for 'xavier', which starts them at zero.
            std: Standard deviation for 'normal' initialization.
            initial_weights: Optional pre-defined weight matrix. Overrides `weight_init`.
            initial_biases: Optional pre-defined bias vector. Overrides `weight_init`.
            rng: Optional numpy random generator, for reproducible initialization.
        """
        super().__init__(num_inputs, num_outputs)
        rng = rng if rng is not None else np.random.default_rng()
        shape = (num_outputs, num_inputs)

        if weight_init == 'random':
            weights = rng.random(shape)
            biases = rng.random(num_outputs)
        elif weight_init == 'normal':
            weights = rng.normal(0.0, std, shape)
            biases = rng.normal(0.0, std, num_outputs)
        elif weight_init == 'xavier':
            limit = np.sqrt(6.0 / (num_inputs + num_outputs))
            weights = rng.uniform(-limit, limit, shape)
            biases = np.zeros(num_outputs)
        else:
            raise ValueError(
                f"LinearModel: Unknown weight_init '{weight_init}'. "
                f"Valid options: ['random', 'normal', 'xavier']"
            )

        if initial_weights is not None:
            weights = as_matrix(initial_weights, num_outputs, num_inputs, "LinearModel initial weights")
            logging.debug("LinearModel: Using provided initial weights.")
        if initial_biases is not None:
            biases = as_vector(initial_biases, num_outputs, "LinearModel initial biases")
            logging.debug("LinearModel: Using provided initial biases.")

        self._weights = np.array(weights, dtype=Fxx)
        self._biases = np.array(biases, dtype=Fxx)

        self.trainer = trainer
        trainer.attach(self)

        logging.debug(
            f"LinearModel created: {num_inputs}->{num_outputs}, weight_init={weight_init}, "
            f"trainer={trainer.__class__.__name__}"
        )

    @classmethod
    def new_random(cls, num_inputs: int, num_outputs: int, trainer: GradientTrainer,
                   rng: Optional[np.random.Generator] = None) -> 'LinearModel':
        """Creates a model with weights and biases drawn uniformly from [0, 1)."""
        return cls(num_inputs, num_outputs, trainer, weight_init='random', rng=rng)

    @classmethod
    def new_normal(cls, num_inputs: int, num_outputs: int, trainer: GradientTrainer, std: float,
                   rng: Optional[np.random.Generator] = None) -> 'LinearModel':
        """Creates a model with weights and biases drawn from N(0, std^2)."""
        return cls(num_inputs, num_outputs, trainer, weight_init='normal', std=std, rng=rng)

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    @property
    def biases(self) -> np.ndarray:
        return self._biases

    def predict(self, x: ArrayLike) -> np.ndarray:
        """Computes W @ x + b."""
        x = as_vector(x, self.num_inputs, "LinearModel input")
        return self._weights @ x + self._biases

    def backpropagate(self, x: ArrayLike, de_dy: ArrayLike) -> np.ndarray:
        """
        Computes the input gradient and lets the trainer update the parameters.

            dE/dx = W.T @ dE/dy
            dE/dW = outer(dE/dy, x)
            dE/db = dE/dy

        Args:
            x: Input vector of shape (num_inputs,).
            de_dy: Error gradient with respect to the output, shape (num_outputs,).

        Returns:
            dE/dx, computed with the weights as they were before this call.
        """
        logging.debug(f"linear backprop {self.num_inputs}->{self.num_outputs}")
        x = as_vector(x, self.num_inputs, "LinearModel input")
        de_dy = as_vector(de_dy, self.num_outputs, "LinearModel output gradient")

        input_error = self._weights.T @ de_dy

        gradients = np.outer(de_dy, x)
        result = self.trainer.train(self._weights, self._biases, gradients, de_dy)
        if isinstance(result, Updated):
            self._weights = as_matrix(result.weights, self.num_outputs, self.num_inputs, "trainer weights")
            self._biases = as_vector(result.biases, self.num_outputs, "trainer biases")

        return input_error

    def update_bulk(self, x: ArrayLike, y: ArrayLike) -> None:
        """
        Fits the parameters to D samples at once by ordinary least squares.

        A row of ones is appended to X so the bias is solved together with the weights:
            X1 = [X; 1]                        shape (M+1, D)
            W1 = Y @ X1.T @ inv(X1 @ X1.T)     shape (N, M+1)
        The last column of W1 becomes the bias.

        Args:
            x: Input samples, one per column, shape (num_inputs, D).
            y: Target samples, one per column, shape (num_outputs, D).

        Raises:
            ValueError: If the shapes of x and y do not fit the model.
            SingularMatrixError: If X1 @ X1.T is singular (too few or degenerate samples).
                                 The parameters are left unchanged.
        """
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if x.ndim != 2 or x.shape[0] != self.num_inputs:
            raise ValueError(f"LinearModel.update_bulk: Expected x with {self.num_inputs} rows, got shape {x.shape}")
        if y.ndim != 2 or y.shape[0] != self.num_outputs:
            raise ValueError(f"LinearModel.update_bulk: Expected y with {self.num_outputs} rows, got shape {y.shape}")
        if x.shape[1] != y.shape[1]:
            raise ValueError(
                f"LinearModel.update_bulk: Sample counts differ, x has {x.shape[1]} and y has {y.shape[1]}"
            )

        x1 = np.vstack([x, np.ones((1, x.shape[1]))])
        xxt = x1 @ x1.T
        if np.linalg.matrix_rank(xxt) < xxt.shape[0]:
            raise SingularMatrixError(f"cannot update_bulk, no inverse for {xxt.tolist()}")
        try:
            xxt_inv = np.linalg.inv(xxt)
        except np.linalg.LinAlgError as e:
            raise SingularMatrixError(f"cannot update_bulk, no inverse for {xxt.tolist()}") from e

        w1 = y @ x1.T @ xxt_inv
        self._weights = w1[:, :self.num_inputs].astype(Fxx)
        self._biases = w1[:, self.num_inputs].astype(Fxx)
        logging.debug(f"LinearModel.update_bulk fit {x.shape[1]} samples")

    def merge(self, a: float, other: 'LinearModel') -> None:
        """Blends another model's parameters into this one: p = (1 - a) * p + a * p_other."""
        if (other.num_inputs, other.num_outputs) != (self.num_inputs, self.num_outputs):
            raise ValueError(
                f"LinearModel.merge: Shape {other.num_inputs}->{other.num_outputs} does not match "
                f"{self.num_inputs}->{self.num_outputs}"
            )
        a = Fxx(a)
        self._weights = ((1 - a) * self._weights + a * other.weights).astype(Fxx)
        self._biases = ((1 - a) * self._biases + a * other.biases).astype(Fxx)

    def get_weights(self) -> Tuple[np.ndarray, np.ndarray]:
        """Returns copies of the current weights and biases."""
        return self._weights.copy(), self._biases.copy()

    def summary(self) -> str:
        """Returns a string summary of the model's configuration."""
        params = self._weights.size + self._biases.size
        return (
            f"LinearModel Summary:\n"
            f"  Input size: {self.num_inputs}\n"
            f"  Output size: {self.num_outputs}\n"
            f"  Weights shape: {self._weights.shape}\n"
            f"  Biases shape: {self._biases.shape}\n"
            f"  Trainer: {self.trainer!r}\n"
            f"  Parameters: {params:,} parameters\n"
        )

    def __repr__(self):
        return (f"LinearModel(num_inputs={self.num_inputs}, num_outputs={self.num_outputs}, "
                f"trainer={self.trainer.__class__.__name__})")

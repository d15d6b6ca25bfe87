from .model import Fxx, Model, as_matrix, as_vector, has_nan
from .trainer import (
    DEFERRED,
    BatchTrainer,
    Deferred,
    GradientTrainer,
    MomentumTrainer,
    SGDTrainer,
    Updated,
    UpdateParams,
)
from .linear_model import LinearModel, SingularMatrixError
from .activations import Logit, ReLU, dsigmoid, sigmoid
from .layered_model import LayeredModel
from .conv2d import Conv2d

__all__ = [
    "Fxx", "Model", "as_matrix", "as_vector", "has_nan",
    "DEFERRED", "BatchTrainer", "Deferred", "GradientTrainer", "MomentumTrainer",
    "SGDTrainer", "Updated", "UpdateParams",
    "LinearModel", "SingularMatrixError",
    "Logit", "ReLU", "dsigmoid", "sigmoid",
    "LayeredModel",
    "Conv2d",
]

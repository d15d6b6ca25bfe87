import numpy as np
import logging

from .model import ArrayLike, Model, as_vector, check_finite


class LayeredModel(Model):
    """
    Two models applied in sequence: model0 maps M -> P, model1 maps P -> N.

    Manages the forward pass through both stages and the backward pass by the chain
    rule. Both stages are held by reference; training the composite trains them.
    """

    def __init__(self, model0: Model, model1: Model):
        """
        Args:
            model0: First stage, its outputs feed model1.
            model1: Second stage.

        Raises:
            ValueError: If model0's output size differs from model1's input size.
        """
        if model0.num_outputs != model1.num_inputs:
            raise ValueError(
                f"LayeredModel: model0 produces {model0.num_outputs} outputs but "
                f"model1 expects {model1.num_inputs} inputs"
            )
        super().__init__(model0.num_inputs, model1.num_outputs)
        self.model0 = model0
        self.model1 = model1
        logging.info(
            f"Created layered model: {model0.num_inputs} -> {model0.num_outputs} -> {model1.num_outputs}"
        )

    def predict(self, x: ArrayLike) -> np.ndarray:
        """Computes model1.predict(model0.predict(x))."""
        y0 = self.model0.predict(x)
        check_finite(y0, "layered intermediate output")
        return self.model1.predict(y0)

    def backpropagate(self, x: ArrayLike, de_dy: ArrayLike) -> np.ndarray:
        """
        Backpropagates through both stages.

            p     = model0.predict(x)
            dE/dp = model1.backpropagate(p, dE/dy)
            dE/dx = model0.backpropagate(x, dE/dp)

        model1 is trained at the intermediate value p computed before model0 changes.
        """
        x = as_vector(x, self.num_inputs, "LayeredModel input")
        de_dy = as_vector(de_dy, self.num_outputs, "LayeredModel output gradient")

        p = self.model0.predict(x)
        check_finite(p, "layered intermediate output")

        de_dp = self.model1.backpropagate(p, de_dy)
        check_finite(de_dp, "layered intermediate error")
        logging.debug(f"|de_dp|={np.linalg.norm(de_dp):.6g}")
        logging.debug(f"|x|={np.linalg.norm(x):.6g}")

        de_dx = self.model0.backpropagate(x, de_dp)
        logging.debug(f"|de_dx|={np.linalg.norm(de_dx):.6g}")
        return de_dx

    def summary(self) -> str:
        """Returns a text summary of both stages."""
        summary_str = "\n" + "=" * 50 + "\n"
        summary_str += "Layered Model Summary\n"
        summary_str += "=" * 50 + "\n"
        for i, model in enumerate((self.model0, self.model1)):
            summary_str += f"Stage {i}: {model!r}\n"
            summary_str += f"  Input Shape: ({model.num_inputs},)\n"
            summary_str += f"  Output Shape: ({model.num_outputs},)\n"
            summary_str += "-" * 50 + "\n"
        return summary_str

    def __repr__(self):
        return f"LayeredModel({self.model0!r}, {self.model1!r})"

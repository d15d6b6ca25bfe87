"""
Shared-weight 2D convolution built from any pooling model.

Conv2d slides a Pr x Pc window over an Ir x Ic image with Pi channels (stride 1, no
padding) and applies the same pooling model to every window. The pooling model maps
a flattened patch of Pi * Pr * Pc values to Po values, so the layer maps
    Ir * Ic * Pi inputs -> (Ir - Pr + 1) * (Ic - Pc + 1) * Po outputs.

Memory layout
    Input:  image[row, col, channel] is x[(row * Ic + col) * Pi + channel], i.e. the
            C-order flattening of an (Ir, Ic, Pi) array: channel varies fastest, then
            column, then row.
    Patch:  same ordering over the (Pr, Pc, Pi) window.
    Output: grid position (r, c) owns the block y[(r * output_cols + c) * Po : ... + Po].

Because windows overlap whenever the patch is larger than one pixel, the backward pass
adds each window's input gradient into the result instead of overwriting it. The one
pooling model is used serially at every position, so its trainer sees one gradient per
grid position on each backward pass.
"""

import numpy as np
import logging

from .model import ArrayLike, Fxx, Model, as_vector


class Conv2d(Model):
    """
    2D convolutional layer around a pooling model.

    Geometry (fixed at construction):
        patch_rows (Pr), patch_cols (Pc): window size
        input_depth (Pi): channels per pixel
        input_rows (Ir), input_cols (Ic): image size
        pool_depth (Po): outputs per window, taken from the pooling model
    """

    def __init__(
        self,
        pooler: Model,
        patch_rows: int,
        patch_cols: int,
        input_rows: int,
        input_cols: int,
        input_depth: int = 1,
    ):
        """
        Args:
            pooler: Model applied to every window. Must take input_depth * patch_rows *
                    patch_cols inputs.
            patch_rows: Window height.
            patch_cols: Window width.
            input_rows: Image height, at least patch_rows.
            input_cols: Image width, at least patch_cols.
            input_depth: Channels per pixel.

        Raises:
            ValueError: If the window does not fit the image or the pooler has the wrong
                        number of inputs.
        """
        if min(patch_rows, patch_cols, input_rows, input_cols, input_depth) < 1:
            raise ValueError("Conv2d: all dimensions must be positive")
        if input_rows < patch_rows or input_cols < patch_cols:
            raise ValueError(
                f"Conv2d: patch ({patch_rows}x{patch_cols}) does not fit the input "
                f"({input_rows}x{input_cols})"
            )
        patch_size = input_depth * patch_rows * patch_cols
        if pooler.num_inputs != patch_size:
            raise ValueError(
                f"Conv2d: pooler expects {pooler.num_inputs} inputs, but a "
                f"{patch_rows}x{patch_cols}x{input_depth} patch has {patch_size}"
            )

        self.pooler = pooler
        self.patch_rows = patch_rows
        self.patch_cols = patch_cols
        self.input_depth = input_depth
        self.input_rows = input_rows
        self.input_cols = input_cols
        self.pool_depth = pooler.num_outputs
        self.output_rows = input_rows - patch_rows + 1
        self.output_cols = input_cols - patch_cols + 1

        super().__init__(
            input_rows * input_cols * input_depth,
            self.output_rows * self.output_cols * self.pool_depth,
        )
        logging.debug(
            f"Conv2d created: M={self.num_inputs}, N={self.num_outputs}, Pr={patch_rows}, "
            f"Pc={patch_cols}, Pi={input_depth}, Po={self.pool_depth}, Ir={input_rows}, Ic={input_cols}"
        )

    def _image(self, flat: np.ndarray) -> np.ndarray:
        """View of a flat input-sized vector as an (Ir, Ic, Pi) array."""
        return flat.reshape(self.input_rows, self.input_cols, self.input_depth)

    def _output_offset(self, r: int, c: int) -> int:
        return self.pool_depth * (r * self.output_cols + c)

    def get_input_patch(self, x: np.ndarray, r: int, c: int) -> np.ndarray:
        """Extracts the flattened window whose top-left corner is at row r, column c."""
        vert_start = r
        vert_end = vert_start + self.patch_rows
        horiz_start = c
        horiz_end = horiz_start + self.patch_cols
        return self._image(x)[vert_start:vert_end, horiz_start:horiz_end, :].flatten()

    def get_output_error_patch(self, err: np.ndarray, r: int, c: int) -> np.ndarray:
        """Returns the part of an output-sized vector produced by the window at (r, c)."""
        offset = self._output_offset(r, c)
        return err[offset:offset + self.pool_depth].copy()

    def patch_output(self, pooled: np.ndarray, dest: np.ndarray, r: int, c: int) -> None:
        """Copies the pooled output of the window at (r, c) into dest."""
        offset = self._output_offset(r, c)
        dest[offset:offset + self.pool_depth] = pooled

    def patch_error(self, error: np.ndarray, pooled_error: np.ndarray, r: int, c: int) -> None:
        """Adds a window's input gradient into the input-sized gradient pooled_error."""
        vert_start = r
        vert_end = vert_start + self.patch_rows
        horiz_start = c
        horiz_end = horiz_start + self.patch_cols
        window = error.reshape(self.patch_rows, self.patch_cols, self.input_depth)
        self._image(pooled_error)[vert_start:vert_end, horiz_start:horiz_end, :] += window

    def predict(self, x: ArrayLike) -> np.ndarray:
        x = as_vector(x, self.num_inputs, "Conv2d input")
        y = np.zeros(self.num_outputs, dtype=Fxx)
        for r in range(self.output_rows):
            for c in range(self.output_cols):
                sub_image = self.get_input_patch(x, r, c)
                sub_result = self.pooler.predict(sub_image)
                self.patch_output(sub_result, y, r, c)
        return y

    def backpropagate(self, x: ArrayLike, de_dy: ArrayLike) -> np.ndarray:
        """
        Backpropagates every window through the shared pooler.

        For each grid position the pooler receives its window of x and its block of
        dE/dy; the returned window gradient is accumulated into dE/dx.
        """
        x = as_vector(x, self.num_inputs, "Conv2d input")
        de_dy = as_vector(de_dy, self.num_outputs, "Conv2d output gradient")
        de_dx = np.zeros(self.num_inputs, dtype=Fxx)
        for r in range(self.output_rows):
            for c in range(self.output_cols):
                err_patch = self.get_output_error_patch(de_dy, r, c)
                sub_x = self.get_input_patch(x, r, c)
                sub_result = self.pooler.backpropagate(sub_x, err_patch)
                self.patch_error(np.asarray(sub_result, dtype=Fxx), de_dx, r, c)
        return de_dx

    def __repr__(self):
        return (f"Conv2d(pooler={self.pooler!r}, patch={self.patch_rows}x{self.patch_cols}x{self.input_depth}, "
                f"input={self.input_rows}x{self.input_cols}, output={self.output_rows}x{self.output_cols}"
                f"x{self.pool_depth})")

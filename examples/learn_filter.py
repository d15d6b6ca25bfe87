"""
Recover a convolution filter - Conv2d demonstration

A fixed 3x3 edge filter is applied to random single-channel images; a Conv2d with a
trainable 3x3 LinearModel pooler learns to reproduce it from (image, filtered image)
pairs. Every window of every image trains the same pooler, so a few hundred images
are enough.
"""

import argparse
import logging
import numpy as np

from clear_lair import Conv2d, LinearModel, MomentumTrainer, SGDTrainer, UpdateParams

# Sobel filter for vertical edges
KERNEL = np.array([[1.0, 0.0, -1.0],
                   [2.0, 0.0, -2.0],
                   [1.0, 0.0, -1.0]])


def build_target(size: int) -> Conv2d:
    trainer = SGDTrainer(UpdateParams(step_size=0.0))
    pooler = LinearModel(9, 1, trainer, initial_weights=KERNEL.reshape(1, 9), initial_biases=[0.0])
    return Conv2d(pooler, patch_rows=3, patch_cols=3, input_rows=size, input_cols=size)


def train_filter(args):
    rng = np.random.default_rng(args.seed)
    target = build_target(args.size)

    trainer = SGDTrainer(UpdateParams(step_size=args.step))
    if args.momentum > 0.0:
        trainer = MomentumTrainer(args.momentum, trainer)
    pooler = LinearModel.new_normal(9, 1, trainer, std=0.1, rng=rng)
    cnn = Conv2d(pooler, patch_rows=3, patch_cols=3, input_rows=args.size, input_cols=args.size)
    logging.info(f"Training {cnn!r}")

    losses = []
    for i in range(args.images):
        x = rng.uniform(-1.0, 1.0, args.size * args.size)
        y = target.predict(x)
        loss = float(np.mean((cnn.predict(x) - y) ** 2))
        losses.append(loss)
        cnn.update(x, y)
        if (i + 1) % args.log_every == 0:
            print(f"Image {i + 1}/{args.images} - mse: {loss:.6f}")

    learned = pooler.weights.reshape(3, 3)
    print("Learned filter:")
    print(np.array2string(learned, precision=3, suppress_small=True))
    print(f"Max deviation from target: {np.max(np.abs(learned - KERNEL)):.4f}")
    return losses


def parse_args():
    parser = argparse.ArgumentParser(description="Learn a 3x3 filter with Conv2d.")
    parser.add_argument('--size', type=int, default=8, help='Image width and height')
    parser.add_argument('--images', type=int, default=300, help='Number of training images')
    parser.add_argument('--step', type=float, default=0.05, help='Step size')
    parser.add_argument('--momentum', type=float, default=0.0, help='Momentum, 0 to disable')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--log-every', type=int, default=50, help='Report every N images')
    parser.add_argument('--plot', action='store_true', help='Plot the training loss')
    parser.add_argument('--log-level', default='WARNING', help='Logging level')
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(level=args.log_level.upper(), format='%(asctime)s - %(levelname)s - %(message)s')
    losses = train_filter(args)
    if args.plot:
        import matplotlib.pyplot as plt

        plt.figure("Filter Training Loss", figsize=(8, 5))
        plt.plot(range(1, len(losses) + 1), losses, label='MSE per image')
        plt.yscale('log')
        plt.xlabel('Image')
        plt.ylabel('Loss (MSE)')
        plt.title('Recovering a 3x3 filter')
        plt.legend()
        plt.grid(True, alpha=0.3)
        plt.tight_layout()
        plt.show()

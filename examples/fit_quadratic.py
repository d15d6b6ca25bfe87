"""
Fit a quadratic with a two-stage model - convergence demonstration

Trains LinearModel(2 -> hidden) -> LinearModel(hidden -> 1) on
    f(x0, x1) = 0.5 * x0^2 + 2 * x0 * x1 - 4 * x1^2 - 6
with samples drawn uniformly from [-10, 10]^2. Each iteration trains on a fresh
sample and reports the error on held-out points:

    <samples seen> <mean |error|> <stddev |error|>

Main steps:
1. Build a trainer per layer (SGD, or BatchTrainer with --mini-batch, optionally
   wrapped in MomentumTrainer with --momentum)
2. Build the layered model
3. Update on every training sample, evaluate on the test sample
4. Optionally plot the error curve (--plot, needs matplotlib)
"""

import argparse
import logging
import numpy as np

from clear_lair import (
    BatchTrainer,
    LayeredModel,
    LinearModel,
    MomentumTrainer,
    SGDTrainer,
    UpdateParams,
)

MAX_ABS = 10.0


def f(x: np.ndarray) -> np.ndarray:
    return np.array([0.5 * x[0] * x[0] + 2.0 * x[0] * x[1] - 4.0 * x[1] * x[1] - 6.0])


def sample_input(rng: np.random.Generator, size: int) -> np.ndarray:
    return rng.uniform(-MAX_ABS, MAX_ABS, (size, 2)).astype(np.float32)


def make_trainer(args, learning_rate: UpdateParams):
    if args.mini_batch > 0:
        trainer = BatchTrainer(learning_rate, args.mini_batch)
    else:
        trainer = SGDTrainer(learning_rate)
    if args.momentum > 0.0:
        trainer = MomentumTrainer(args.momentum, trainer)
    return trainer


def optimize_quadratic(args):
    rng = np.random.default_rng(args.seed)
    learning_rate = UpdateParams(step_size=args.step, l2_reg=args.l2)

    m0 = LinearModel.new_random(2, args.hidden, make_trainer(args, learning_rate), rng=rng)
    m1 = LinearModel.new_random(args.hidden, 1, make_trainer(args, learning_rate), rng=rng)
    model = LayeredModel(m0, m1)
    logging.info(model.summary())

    history = {'samples': [], 'mean_error': [], 'std_error': []}
    for i in range(1, args.iter + 1):
        sample = sample_input(rng, args.test_size + args.train_size)
        train, test = sample[:args.train_size], sample[args.train_size:]
        for x in train:
            y = f(x)
            yh = model.predict(x)
            e = model.update(x, y)
            yh1 = model.predict(x)
            logging.debug(
                f"({x[0]:.3f},{x[1]:.3f}) -> {y[0]:.3f}/{yh[0]:.3f} e={np.linalg.norm(yh - y):.4f} "
                f"de={np.linalg.norm(e):.4f} delta={np.linalg.norm(yh - y) - np.linalg.norm(yh1 - y):.4f}"
            )

        errors = np.array([np.linalg.norm(model.predict(x) - f(x)) for x in test])
        mean_error = errors.mean()
        std_error = np.sqrt(max(0.0, (errors ** 2).mean() - mean_error ** 2))
        print(f"{i * args.train_size} {mean_error} {std_error}")

        history['samples'].append(i * args.train_size)
        history['mean_error'].append(mean_error)
        history['std_error'].append(std_error)
    return history


def plot_history(history):
    import matplotlib.pyplot as plt

    samples = np.array(history['samples'])
    mean_error = np.array(history['mean_error'])
    std_error = np.array(history['std_error'])

    plt.figure("Quadratic Fit Error", figsize=(8, 5))
    plt.plot(samples, mean_error, label='Mean test error')
    plt.fill_between(samples, mean_error - std_error, mean_error + std_error, alpha=0.2)
    plt.xlabel('Training samples')
    plt.ylabel('|error|')
    plt.title('Test error while fitting a quadratic')
    plt.legend()
    plt.grid(True, alpha=0.3)
    plt.tight_layout()
    plt.show()


def parse_args():
    parser = argparse.ArgumentParser(
        description="Demonstrate batch convergence training on a simple function.")
    parser.add_argument('-n', '--iter', type=int, default=100, help='Number of iterations')
    parser.add_argument('-m', '--mini-batch', type=int, default=0, help='Mini-batch size, 0 for plain SGD')
    parser.add_argument('-s', '--step', type=float, default=1e-3, help='Step size')
    parser.add_argument('-b', '--test-size', type=int, default=20, help='Test samples per iteration')
    parser.add_argument('-B', '--train-size', type=int, default=80, help='Training samples per iteration')
    parser.add_argument('-l', '--l2', type=float, default=0.0, help='L2 regularization')
    parser.add_argument('--momentum', type=float, default=0.0, help='Momentum, 0 to disable')
    parser.add_argument('--hidden', type=int, default=2, help='Width of the hidden layer')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--plot', action='store_true', help='Plot the error curve')
    parser.add_argument('--log-level', default='WARNING', help='Logging level')
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(level=args.log_level.upper(), format='%(asctime)s - %(levelname)s - %(message)s')
    print(f"# step={args.step} n_train={args.train_size} n_test={args.test_size} mini_batch={args.mini_batch}")
    history = optimize_quadratic(args)
    if args.plot:
        plot_history(history)

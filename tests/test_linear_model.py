import numpy as np
import pytest

from clear_lair import (
    BatchTrainer,
    LinearModel,
    SGDTrainer,
    SingularMatrixError,
    UpdateParams,
)

LEARNING_PARAMS = UpdateParams(step_size=0.001, l2_reg=0.0)


def f(x):
    return 2.0 * x[0] - 0.1 * x[1] + 1.0


def test_create_linear_model(rng):
    model = LinearModel.new_random(2, 1, SGDTrainer(LEARNING_PARAMS), rng=rng)
    assert model.num_inputs == 2
    assert model.num_outputs == 1
    assert model.weights.shape == (1, 2)
    assert model.biases.shape == (1,)
    assert model.weights.dtype == np.float32


def test_predict_is_affine():
    model = LinearModel(2, 2, SGDTrainer(LEARNING_PARAMS),
                        initial_weights=np.array([[1.0, 2.0], [3.0, 4.0]]),
                        initial_biases=np.array([0.5, -0.5]))
    np.testing.assert_allclose(model.predict([1.0, -1.0]), [-0.5, -1.5])


def test_rejects_wrong_initial_weights():
    with pytest.raises(ValueError):
        LinearModel(2, 1, SGDTrainer(LEARNING_PARAMS), initial_weights=np.zeros((2, 1)))


def test_rejects_wrong_input_size(rng):
    model = LinearModel.new_random(2, 1, SGDTrainer(LEARNING_PARAMS), rng=rng)
    with pytest.raises(ValueError):
        model.predict([1.0, 2.0, 3.0])


def test_trainer_cannot_be_shared(rng):
    trainer = SGDTrainer(LEARNING_PARAMS)
    LinearModel.new_random(2, 1, trainer, rng=rng)
    with pytest.raises(ValueError):
        LinearModel.new_random(2, 1, trainer, rng=rng)


def test_backpropagate_returns_input_gradient():
    # step_size 0 keeps the parameters fixed
    model = LinearModel(3, 2, SGDTrainer(UpdateParams(step_size=0.0)),
                        initial_weights=np.array([[1.0, 0.0, 2.0], [0.0, 1.0, -1.0]]),
                        initial_biases=np.zeros(2))
    de_dx = model.backpropagate([1.0, 1.0, 1.0], [1.0, 2.0])
    np.testing.assert_allclose(de_dx, [1.0, 2.0, 0.0])


def test_backpropagate_applies_outer_product_gradient():
    model = LinearModel(2, 1, SGDTrainer(UpdateParams(step_size=2.0)),
                        initial_weights=np.array([[1.0, 1.0]]),
                        initial_biases=np.array([0.0]))
    model.backpropagate([0.5, 2.0], [1.0])
    # step = 2.0 / 2 inputs, dE/dW = [0.5, 2.0], dE/db = 1.0
    np.testing.assert_allclose(model.weights, [[0.5, -1.0]])
    np.testing.assert_allclose(model.biases, [-1.0])


def test_deferred_update_keeps_parameters(rng):
    model = LinearModel.new_random(2, 1, BatchTrainer(LEARNING_PARAMS, 3), rng=rng)
    before = model.get_weights()
    model.update([0.5, 1.0], [10.0])
    model.update([0.5, 1.0], [10.0])
    np.testing.assert_array_equal(model.weights, before[0])
    np.testing.assert_array_equal(model.biases, before[1])
    model.update([0.5, 1.0], [10.0])
    assert not np.array_equal(model.weights, before[0])


def test_update_linear_model_improves_estimate(rng):
    model = LinearModel.new_normal(2, 1, SGDTrainer(LEARNING_PARAMS), 100.0, rng=rng)
    x0 = np.array([0.5, 1.0])
    y0 = np.array([3.0])

    errors = []
    for _ in range(10):
        model.update(x0, y0)
        yh = model.predict(x0)
        errors.append(float((y0[0] - yh[0]) ** 2))

    assert all(e0 > e1 for e0, e1 in zip(errors, errors[1:])), errors


def test_update_linear_model_improves_backprop_error(rng):
    model = LinearModel.new_normal(2, 1, SGDTrainer(LEARNING_PARAMS), 100.0, rng=rng)
    x = np.array([0.5, 1.0])
    y = np.array([f(x)])

    de0 = model.update(x, y)
    de1 = model.update(x, y)

    assert np.linalg.norm(de0) - np.linalg.norm(de1) > -2.0 * LEARNING_PARAMS.step_size


def test_update_bulk_linear_model(fitted_linear):
    yh = fitted_linear.predict([0.5, 1.0])
    assert yh[0] == pytest.approx(3.0, abs=1e-5)


def test_update_bulk_recovers_generating_parameters(rng):
    w = rng.normal(size=(3, 4))
    b = rng.normal(size=3)
    x = rng.normal(size=(4, 50))
    y = w @ x + b[:, None]

    model = LinearModel.new_random(4, 3, SGDTrainer(LEARNING_PARAMS), rng=rng)
    model.update_bulk(x, y)

    np.testing.assert_allclose(model.weights, w, atol=1e-4)
    np.testing.assert_allclose(model.biases, b, atol=1e-4)


def test_update_bulk_unconstrained_linear_model(rng):
    model = LinearModel.new_random(2, 1, SGDTrainer(LEARNING_PARAMS), rng=rng)
    before = model.get_weights()

    with pytest.raises(SingularMatrixError) as excinfo:
        model.update_bulk(np.array([[2.0], [1.0]]), np.array([[6.0]]))

    assert str(excinfo.value).startswith("cannot update_bulk, no inverse for")
    np.testing.assert_array_equal(model.weights, before[0])
    np.testing.assert_array_equal(model.biases, before[1])


def test_update_bulk_rejects_mismatched_samples(rng, bulk_samples):
    model = LinearModel.new_random(2, 1, SGDTrainer(LEARNING_PARAMS), rng=rng)
    x, y = bulk_samples
    with pytest.raises(ValueError):
        model.update_bulk(x, y[:, :2])


def test_merge_blends_parameters():
    a = LinearModel(2, 1, SGDTrainer(LEARNING_PARAMS), initial_weights=[[0.0, 4.0]], initial_biases=[2.0])
    b = LinearModel(2, 1, SGDTrainer(LEARNING_PARAMS), initial_weights=[[4.0, 0.0]], initial_biases=[-2.0])
    a.merge(0.25, b)
    np.testing.assert_allclose(a.weights, [[1.0, 3.0]])
    np.testing.assert_allclose(a.biases, [1.0])


def test_merge_rejects_other_shape(rng):
    a = LinearModel.new_random(2, 1, SGDTrainer(LEARNING_PARAMS), rng=rng)
    b = LinearModel.new_random(3, 1, SGDTrainer(LEARNING_PARAMS), rng=rng)
    with pytest.raises(ValueError):
        a.merge(0.5, b)


def test_summary_mentions_shapes(fitted_linear):
    text = fitted_linear.summary()
    assert "Input size: 2" in text
    assert "Parameters: 3 parameters" in text

"""Tests for the loss evaluators.

Covers finite-difference gradient and Hessian checks for all three
losses, ``Hv == H·v``, the unpenalized-intercept convention, the
multinomial shift invariance, partial evaluation, the elastic-net
wrapper, the evaluator registry and input validation.
"""

from __future__ import annotations

import numpy as np
import pytest

from penalized_glr import (
    GLR,
    ElasticNetEvaluator,
    LogisticLossEvaluator,
    LossEvaluator,
    LossKind,
    MultinomialLossEvaluator,
    SquaredLossEvaluator,
    check_inputs,
    register_evaluator,
    resolve_evaluator,
)
from penalized_glr.glr import PenaltyKind
from penalized_glr.losses import lookup_evaluator

N, P, C = 40, 3, 3

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _fd_gradient(f, theta, h=1e-6):
    g = np.empty_like(theta)
    for j in range(theta.size):
        e = np.zeros_like(theta)
        e[j] = h
        g[j] = (f(theta + e) - f(theta - e)) / (2 * h)
    return g


def _fd_hessian(ev, theta, h=1e-6):
    d = theta.size
    H = np.empty((d, d))
    gp, gm = np.empty(d), np.empty(d)
    for j in range(d):
        e = np.zeros(d)
        e[j] = h
        ev.value_gradient_hessian(theta + e, gp, value=False)
        ev.value_gradient_hessian(theta - e, gm, value=False)
        H[:, j] = (gp - gm) / (2 * h)
    return H


def _data(loss: LossKind, seed: int = 0):
    rng = np.random.default_rng(seed)
    X = rng.standard_normal((N, P))
    if loss is LossKind.SQUARED:
        y = X @ np.array([1.0, -2.0, 0.5]) + 0.3 + 0.1 * rng.standard_normal(N)
    elif loss is LossKind.LOGISTIC:
        y = np.where(X[:, 0] - X[:, 1] + 0.5 * rng.standard_normal(N) > 0, 1.0, -1.0)
    else:
        y = rng.integers(1, C + 1, N)
    return X, y


def _problem(loss, *, fit_intercept=True, penalize_intercept=False, lam=0.7):
    glr = GLR(
        loss,
        lambda_=lam,
        fit_intercept=fit_intercept,
        penalize_intercept=penalize_intercept,
    )
    X, y = _data(loss)
    ev = resolve_evaluator(glr, X, y)
    d = glr.n_coef(P, C if loss is LossKind.MULTINOMIAL else 0)
    theta = 0.3 * np.random.default_rng(99).standard_normal(d)
    return glr, X, y, ev, theta


_LOSSES = [LossKind.SQUARED, LossKind.LOGISTIC, LossKind.MULTINOMIAL]
_LAYOUTS = [
    {"fit_intercept": True, "penalize_intercept": False},
    {"fit_intercept": True, "penalize_intercept": True},
    {"fit_intercept": False, "penalize_intercept": False},
]


# ------------------------------------------------------------------ #
# Derivative checks
# ------------------------------------------------------------------ #


class TestDerivatives:
    @pytest.mark.parametrize("loss", _LOSSES)
    @pytest.mark.parametrize("layout", _LAYOUTS)
    def test_gradient_matches_finite_differences(self, loss, layout):
        _, _, _, ev, theta = _problem(loss, **layout)
        g = np.empty_like(theta)
        ev.value_gradient_hessian(theta, g)
        fd = _fd_gradient(ev.objective, theta)
        np.testing.assert_allclose(g, fd, rtol=1e-6, atol=1e-6)

    @pytest.mark.parametrize("loss", _LOSSES)
    @pytest.mark.parametrize("layout", _LAYOUTS)
    def test_hessian_matches_finite_differences(self, loss, layout):
        _, _, _, ev, theta = _problem(loss, **layout)
        d = theta.size
        H = np.empty((d, d))
        ev.value_gradient_hessian(theta, H=H, value=False)
        np.testing.assert_allclose(H, _fd_hessian(ev, theta), rtol=1e-5, atol=1e-5)
        np.testing.assert_allclose(H, H.T, atol=1e-12)

    @pytest.mark.parametrize("loss", _LOSSES)
    @pytest.mark.parametrize("layout", _LAYOUTS)
    def test_hv_matches_dense_hessian(self, loss, layout):
        _, _, _, ev, theta = _problem(loss, **layout)
        d = theta.size
        H = np.empty((d, d))
        ev.value_gradient_hessian(theta, H=H, value=False)
        rng = np.random.default_rng(3)
        for _ in range(3):
            v = rng.standard_normal(d)
            Hv = np.empty(d)
            ev.hessian_vector_product(Hv, theta, v)
            np.testing.assert_allclose(Hv, H @ v, rtol=1e-10, atol=1e-10)

    @pytest.mark.parametrize("loss", _LOSSES)
    def test_objective_matches_combined_call(self, loss):
        _, _, _, ev, theta = _problem(loss)
        g = np.empty_like(theta)
        f = ev.value_gradient_hessian(theta, g)
        assert ev.objective(theta) == pytest.approx(f)
        g2 = np.empty_like(theta)
        assert ev.smooth_value_gradient(g2, theta) == pytest.approx(f)
        np.testing.assert_array_equal(g, g2)


# ------------------------------------------------------------------ #
# Closed-form values
# ------------------------------------------------------------------ #


class TestValues:
    def test_squared_value(self):
        glr, X, y, ev, theta = _problem(LossKind.SQUARED)
        r = y - (X @ theta[:P] + theta[P])
        expected = 0.5 * r @ r + 0.5 * glr.lambda_ * theta[:P] @ theta[:P]
        assert ev.objective(theta) == pytest.approx(expected, rel=1e-12)

    def test_logistic_value(self):
        glr, X, y, ev, theta = _problem(LossKind.LOGISTIC)
        m = y * (X @ theta[:P] + theta[P])
        expected = np.sum(np.log1p(np.exp(-m))) + 0.5 * glr.lambda_ * theta[:P] @ theta[:P]
        assert ev.objective(theta) == pytest.approx(expected, rel=1e-12)

    def test_logistic_extreme_margins_finite(self):
        X = np.array([[1e3], [-1e3]])
        y = np.array([1.0, 1.0])
        ev = resolve_evaluator(GLR(LossKind.LOGISTIC, fit_intercept=False), X, y)
        theta = np.array([10.0])
        g = np.empty(1)
        f = ev.value_gradient_hessian(theta, g)
        # log(1 + e^{-1e4}) + log(1 + e^{1e4}) = 1e4 to double precision.
        assert f == pytest.approx(1e4)
        assert np.all(np.isfinite(g))

    def test_multinomial_value(self):
        glr, X, y, ev, theta = _problem(LossKind.MULTINOMIAL, lam=0.0)
        W = theta.reshape(C, P + 1)
        logits = X @ W[:, :P].T + W[:, P]
        lse = np.log(np.exp(logits).sum(axis=1))
        expected = np.sum(lse - logits[np.arange(N), y - 1])
        assert ev.objective(theta) == pytest.approx(expected, rel=1e-12)

    def test_multinomial_huge_logits_finite(self):
        X, y = _data(LossKind.MULTINOMIAL)
        ev = resolve_evaluator(GLR(LossKind.MULTINOMIAL), X, y)
        theta = np.full(C * (P + 1), 500.0)
        theta[: P + 1] = -500.0
        g = np.empty_like(theta)
        assert np.isfinite(ev.value_gradient_hessian(theta, g))
        assert np.all(np.isfinite(g))


# ------------------------------------------------------------------ #
# Unpenalized intercept
# ------------------------------------------------------------------ #


class TestInterceptPenalty:
    @pytest.mark.parametrize("loss", _LOSSES)
    def test_penalty_skips_every_intercept(self, loss):
        lam = 5.0
        X, y = _data(loss)
        ev0 = resolve_evaluator(GLR(loss, lambda_=0.0), X, y)
        ev1 = resolve_evaluator(GLR(loss, lambda_=lam), X, y)
        blocks = C if loss is LossKind.MULTINOMIAL else 1
        d = blocks * (P + 1)
        theta = np.random.default_rng(5).standard_normal(d)

        g0, g1 = np.empty(d), np.empty(d)
        H0, H1 = np.empty((d, d)), np.empty((d, d))
        Hv0, Hv1 = np.empty(d), np.empty(d)
        v = np.ones(d)
        ev0.value_gradient_hessian(theta, g0, H0)
        ev1.value_gradient_hessian(theta, g1, H1)
        ev0.hessian_vector_product(Hv0, theta, v)
        ev1.hessian_vector_product(Hv1, theta, v)

        mask = np.ones(d)
        mask[P :: P + 1] = 0.0  # intercept of every class block
        np.testing.assert_allclose(g1 - g0, lam * mask * theta, atol=1e-10)
        np.testing.assert_allclose(H1 - H0, lam * np.diag(mask), atol=1e-10)
        np.testing.assert_allclose(Hv1 - Hv0, lam * mask * v, atol=1e-10)

    def test_penalized_intercept_included(self):
        X, y = _data(LossKind.LOGISTIC)
        lam = 2.0
        g0, g1 = np.empty(P + 1), np.empty(P + 1)
        theta = np.full(P + 1, 0.5)
        resolve_evaluator(GLR(LossKind.LOGISTIC, 0.0), X, y).value_gradient_hessian(theta, g0)
        resolve_evaluator(
            GLR(LossKind.LOGISTIC, lam, penalize_intercept=True), X, y
        ).value_gradient_hessian(theta, g1)
        np.testing.assert_allclose(g1 - g0, lam * theta, atol=1e-12)


# ------------------------------------------------------------------ #
# Multinomial invariances
# ------------------------------------------------------------------ #


class TestMultinomialShift:
    def test_value_invariant_to_row_shift(self):
        # Shifting one feature's weight equally in every class adds
        # x_ij·δ to every logit of row i.
        X, y = _data(LossKind.MULTINOMIAL)
        ev = resolve_evaluator(GLR(LossKind.MULTINOMIAL), X, y)
        theta = np.random.default_rng(4).standard_normal(C * (P + 1))
        shifted = theta.reshape(C, P + 1).copy()
        shifted[:, 0] += 3.7
        shifted[:, P] -= 11.0
        assert ev.objective(shifted.ravel()) == pytest.approx(ev.objective(theta), rel=1e-12)

    def test_gradient_invariant_to_row_shift(self):
        X, y = _data(LossKind.MULTINOMIAL)
        ev = resolve_evaluator(GLR(LossKind.MULTINOMIAL), X, y)
        theta = np.random.default_rng(4).standard_normal(C * (P + 1))
        shifted = theta.reshape(C, P + 1).copy()
        shifted[:, P] += 250.0
        g, gs = np.empty_like(theta), np.empty_like(theta)
        ev.value_gradient_hessian(theta, g)
        ev.value_gradient_hessian(shifted.ravel(), gs)
        np.testing.assert_allclose(gs, g, atol=1e-10)

    def test_n_classes_larger_than_observed(self):
        X, y = _data(LossKind.MULTINOMIAL)
        glr = GLR(LossKind.MULTINOMIAL, 0.5, n_classes=5)
        ev = resolve_evaluator(glr, X, y)
        theta = np.zeros(5 * (P + 1))
        # Uniform probabilities at θ = 0.
        assert ev.objective(theta) == pytest.approx(N * np.log(5))


# ------------------------------------------------------------------ #
# Partial evaluation and buffers
# ------------------------------------------------------------------ #


class TestPartialEvaluation:
    def test_value_false_returns_none(self):
        _, _, _, ev, theta = _problem(LossKind.LOGISTIC)
        g = np.empty_like(theta)
        assert ev.value_gradient_hessian(theta, g, value=False) is None

    def test_value_only_leaves_buffers(self):
        _, _, _, ev, theta = _problem(LossKind.MULTINOMIAL)
        assert isinstance(ev.value_gradient_hessian(theta), float)

    def test_hessian_only_matches_full_call(self):
        _, _, _, ev, theta = _problem(LossKind.LOGISTIC)
        d = theta.size
        H_full, H_only = np.empty((d, d)), np.empty((d, d))
        ev.value_gradient_hessian(theta, np.empty(d), H_full)
        ev.value_gradient_hessian(theta, H=H_only, value=False)
        np.testing.assert_array_equal(H_only, H_full)

    @pytest.mark.parametrize("loss", _LOSSES)
    def test_wrong_shapes_rejected(self, loss):
        _, _, _, ev, theta = _problem(loss)
        d = theta.size
        with pytest.raises(ValueError, match="theta"):
            ev.value_gradient_hessian(theta[:-1])
        with pytest.raises(ValueError, match="g must have shape"):
            ev.value_gradient_hessian(theta, np.empty(d + 1))
        with pytest.raises(ValueError, match="H must have shape"):
            ev.value_gradient_hessian(theta, H=np.empty((d, d - 1)))
        with pytest.raises(ValueError, match="Hv must have shape"):
            ev.hessian_vector_product(np.empty(d - 1), theta, theta)


# ------------------------------------------------------------------ #
# Elastic net wrapper
# ------------------------------------------------------------------ #


class TestElasticNet:
    @pytest.mark.parametrize("loss", _LOSSES)
    def test_smooth_part_and_l1(self, loss):
        X, y = _data(loss)
        en = GLR(loss, lambda_=0.4, gamma=1.3)
        ev = resolve_evaluator(en, X, y)
        ref = resolve_evaluator(en.smooth(), X, y)
        assert isinstance(ev, ElasticNetEvaluator)

        blocks = C if loss is LossKind.MULTINOMIAL else 1
        d = blocks * (P + 1)
        theta = np.random.default_rng(8).standard_normal(d)
        g, g_ref = np.empty(d), np.empty(d)
        f = ev.smooth_value_gradient(g, theta)
        f_ref = ref.smooth_value_gradient(g_ref, theta)
        assert f == pytest.approx(f_ref)
        np.testing.assert_array_equal(g, g_ref)

        l1 = 1.3 * np.abs(theta.reshape(blocks, P + 1)[:, :P]).sum()
        assert ev.objective(theta) == pytest.approx(f_ref + l1)

    def test_hv_delegates(self):
        X, y = _data(LossKind.LOGISTIC)
        en = GLR(LossKind.LOGISTIC, lambda_=0.4, gamma=1.3)
        ev = resolve_evaluator(en, X, y)
        ref = resolve_evaluator(en.smooth(), X, y)
        theta = np.linspace(-1, 1, P + 1)
        v = np.ones(P + 1)
        a, b = np.empty(P + 1), np.empty(P + 1)
        ev.hessian_vector_product(a, theta, v)
        ref.hessian_vector_product(b, theta, v)
        np.testing.assert_array_equal(a, b)


# ------------------------------------------------------------------ #
# Registry and dispatch
# ------------------------------------------------------------------ #


class TestRegistry:
    def test_dispatch_table(self):
        assert lookup_evaluator(LossKind.SQUARED, PenaltyKind.L2) is SquaredLossEvaluator
        assert lookup_evaluator(LossKind.LOGISTIC, PenaltyKind.L2) is LogisticLossEvaluator
        assert (
            lookup_evaluator(LossKind.MULTINOMIAL, PenaltyKind.L2)
            is MultinomialLossEvaluator
        )
        for loss in _LOSSES:
            assert lookup_evaluator(loss, PenaltyKind.ELASTIC_NET) is ElasticNetEvaluator

    def test_protocol_conformance(self):
        for loss in _LOSSES:
            _, _, _, ev, _ = _problem(loss)
            assert isinstance(ev, LossEvaluator)

    def test_register_rejects_non_evaluator(self):
        with pytest.raises(TypeError, match="LossEvaluator"):
            register_evaluator("squared", "l2", int)

    def test_register_replaces_cell(self, monkeypatch):
        import penalized_glr.losses as losses

        monkeypatch.setattr(losses, "_EVALUATORS", dict(losses._EVALUATORS))

        class Tagged(SquaredLossEvaluator):
            pass

        register_evaluator("squared", "l2", Tagged)
        X, y = _data(LossKind.SQUARED)
        assert isinstance(resolve_evaluator(GLR(lambda_=1.0), X, y), Tagged)


# ------------------------------------------------------------------ #
# Input validation
# ------------------------------------------------------------------ #


class TestCheckInputs:
    def test_integer_X_cast(self):
        X, y, c = check_inputs(GLR(), np.arange(6).reshape(3, 2), np.zeros(3))
        assert X.dtype == np.float64
        assert c == 0

    def test_X_must_be_2d(self):
        with pytest.raises(ValueError, match="2-D"):
            check_inputs(GLR(), np.zeros(3), np.zeros(3))

    def test_y_length(self):
        with pytest.raises(ValueError, match="3 entries"):
            check_inputs(GLR(), np.zeros((3, 2)), np.zeros(4))

    def test_empty_X(self):
        with pytest.raises(ValueError, match="at least one"):
            check_inputs(GLR(), np.zeros((0, 2)), np.zeros(0))

    def test_non_numeric(self):
        with pytest.raises(ValueError, match="numeric"):
            check_inputs(GLR(), np.array([["a"], ["b"]]), np.zeros(2))

    def test_logistic_labels(self):
        with pytest.raises(ValueError, match=r"\{-1, \+1\}"):
            check_inputs(GLR(LossKind.LOGISTIC), np.zeros((3, 1)), np.array([0, 1, 1]))

    def test_multinomial_infers_classes(self):
        _, y, c = check_inputs(GLR(LossKind.MULTINOMIAL), np.zeros((4, 1)), [1, 3, 2, 3])
        assert c == 3
        assert y.dtype == np.intp
        # Labels 1..c map to class blocks 0..c-1.
        np.testing.assert_array_equal(y, [0, 2, 1, 2])

    def test_multinomial_explicit_classes_match_labels(self):
        glr = GLR(LossKind.MULTINOMIAL, n_classes=3)
        y_raw = np.random.default_rng(0).integers(1, 4, 30)
        _, y, c = check_inputs(glr, np.zeros((30, 1)), y_raw)
        assert c == 3
        np.testing.assert_array_equal(y, y_raw - 1)

    def test_multinomial_label_out_of_range(self):
        glr = GLR(LossKind.MULTINOMIAL, n_classes=2)
        with pytest.raises(ValueError, match="out of range"):
            check_inputs(glr, np.zeros((3, 1)), np.array([1, 2, 3]))

    def test_multinomial_zero_or_fractional(self):
        glr = GLR(LossKind.MULTINOMIAL)
        with pytest.raises(ValueError, match="positive integer"):
            check_inputs(glr, np.zeros((2, 1)), np.array([0, 1]))
        with pytest.raises(ValueError, match="positive integer"):
            check_inputs(glr, np.zeros((2, 1)), np.array([1.5, 2.0]))

    def test_multinomial_single_class(self):
        with pytest.raises(ValueError, match="at least 2 classes"):
            check_inputs(GLR(LossKind.MULTINOMIAL), np.zeros((2, 1)), np.array([1, 1]))

"""Tests for the GLR problem specification and its constructors."""

import numpy as np
import pytest

from penalized_glr.glr import (
    GLR,
    LossKind,
    PenaltyKind,
    elastic_net_regression,
    lasso_regression,
    linear_regression,
    logistic_regression,
    multinomial_regression,
    ridge_regression,
)


class TestValidation:
    def test_string_loss_normalised(self):
        glr = GLR("logistic", lambda_=1.0)
        assert glr.loss is LossKind.LOGISTIC

    def test_unknown_loss(self):
        with pytest.raises(ValueError, match="Unknown loss"):
            GLR("hinge")

    def test_negative_lambda(self):
        with pytest.raises(ValueError, match="lambda_"):
            GLR(lambda_=-1.0)

    def test_negative_gamma(self):
        with pytest.raises(ValueError, match="gamma"):
            GLR(gamma=-0.1)

    def test_n_classes_requires_multinomial(self):
        with pytest.raises(ValueError, match="multinomial"):
            GLR(LossKind.LOGISTIC, n_classes=3)

    def test_n_classes_at_least_two(self):
        with pytest.raises(ValueError, match="at least 2"):
            multinomial_regression(n_classes=1)

    def test_frozen(self):
        glr = ridge_regression(1.0)
        with pytest.raises(AttributeError):
            glr.lambda_ = 2.0  # type: ignore[misc]


class TestConstructors:
    def test_linear(self):
        glr = linear_regression()
        assert glr.loss is LossKind.SQUARED
        assert glr.lambda_ == 0.0
        assert glr.penalty is PenaltyKind.L2

    def test_ridge(self):
        glr = ridge_regression(2.5, penalize_intercept=True)
        assert glr.lambda_ == 2.5
        assert glr.penalize_intercept

    def test_lasso_is_elastic_net_kind(self):
        glr = lasso_regression(0.3)
        assert glr.lambda_ == 0.0
        assert glr.penalty is PenaltyKind.ELASTIC_NET

    def test_elastic_net(self):
        glr = elastic_net_regression(1.0, 2.0)
        assert glr.penalty is PenaltyKind.ELASTIC_NET
        assert glr.smooth().penalty is PenaltyKind.L2
        assert glr.smooth().lambda_ == 1.0

    def test_logistic_defaults(self):
        glr = logistic_regression()
        assert glr.loss is LossKind.LOGISTIC
        assert glr.lambda_ == 1.0
        assert not glr.is_multiclass

    def test_multinomial(self):
        glr = multinomial_regression(0.5, n_classes=4)
        assert glr.is_multiclass
        assert glr.n_classes == 4


class TestPenaltyHelpers:
    def test_scaling_with_samples(self):
        glr = elastic_net_regression(2.0, 3.0, scale_penalty_with_samples=True)
        assert glr.l2_scale(10) == 20.0
        assert glr.l1_scale(10) == 30.0
        assert ridge_regression(2.0).l2_scale(10) == 2.0

    def test_n_coef(self):
        assert ridge_regression().n_coef(5) == 6
        assert ridge_regression(fit_intercept=False).n_coef(5) == 5
        assert multinomial_regression().n_coef(5, 3) == 18

    def test_unpenalized_index_binary(self):
        idx = ridge_regression().unpenalized_index(6)
        assert np.arange(6)[idx].tolist() == [5]

    def test_unpenalized_index_every_class_intercept(self):
        idx = multinomial_regression().unpenalized_index(12, 3)
        assert np.arange(12)[idx].tolist() == [3, 7, 11]

    def test_unpenalized_index_none(self):
        assert ridge_regression(penalize_intercept=True).unpenalized_index(6) is None
        assert ridge_regression(fit_intercept=False).unpenalized_index(5) is None

    def test_l2_penalty_skips_intercept(self):
        theta = np.array([1.0, 2.0, 100.0])
        assert ridge_regression(2.0).l2_penalty(theta, 10) == pytest.approx(5.0)
        assert ridge_regression(2.0, penalize_intercept=True).l2_penalty(
            theta, 10
        ) == pytest.approx(0.5 * 2.0 * 10005.0)

    def test_l1_penalty_per_class(self):
        theta = np.array([1.0, -2.0, 50.0, -3.0, 4.0, -50.0])
        glr = multinomial_regression(0.0, 1.5)
        assert glr.l1_penalty(theta, 10, 2) == pytest.approx(1.5 * 10.0)

    def test_zero_scale_short_circuits(self):
        theta = np.array([np.inf, 0.0])
        assert linear_regression().l2_penalty(theta, 3) == 0.0

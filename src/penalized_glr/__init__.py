"""penalized_glr — Objective, gradient, Hessian and Hv kernels for penalized GLMs.

Squared, logistic (±1) and multinomial losses with L2 or elastic-net
penalties, a logical (never materialised) intercept column, reusable
scratch workspaces, a closed-form / conjugate-gradient ridge solver,
and small optimizer drivers built on the same evaluator protocol.
An optional JAX backend derives every derivative by autodiff.

Public API:
    .. autosummary::
        GLR
        LossKind
        PenaltyKind
        linear_regression
        ridge_regression
        lasso_regression
        elastic_net_regression
        logistic_regression
        multinomial_regression
        Scratch
        allocate_scratch
        LossEvaluator
        SquaredLossEvaluator
        LogisticLossEvaluator
        MultinomialLossEvaluator
        ElasticNetEvaluator
        check_inputs
        register_evaluator
        resolve_evaluator
        closed_form_solve
        Analytical
        Newton
        NewtonCG
        LBFGS
        ProxGrad
        default_solver
        fit
        get_backend
        set_backend
"""

from ._config import get_backend, set_backend
from ._scratch import Scratch, allocate_scratch
from .analytical import closed_form_solve
from .glr import (
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
from .losses import (
    ElasticNetEvaluator,
    LogisticLossEvaluator,
    LossEvaluator,
    MultinomialLossEvaluator,
    SquaredLossEvaluator,
    check_inputs,
    register_evaluator,
    resolve_evaluator,
)
from .solvers import LBFGS, Analytical, Newton, NewtonCG, ProxGrad, default_solver, fit

__version__ = "0.1.0"

__all__ = [
    "GLR",
    "LossKind",
    "PenaltyKind",
    "linear_regression",
    "ridge_regression",
    "lasso_regression",
    "elastic_net_regression",
    "logistic_regression",
    "multinomial_regression",
    "Scratch",
    "allocate_scratch",
    "LossEvaluator",
    "SquaredLossEvaluator",
    "LogisticLossEvaluator",
    "MultinomialLossEvaluator",
    "ElasticNetEvaluator",
    "check_inputs",
    "register_evaluator",
    "resolve_evaluator",
    "closed_form_solve",
    "Analytical",
    "Newton",
    "NewtonCG",
    "LBFGS",
    "ProxGrad",
    "default_solver",
    "fit",
    "get_backend",
    "set_backend",
]

from ciaopts import (
    errors,
    functions,
    logger,
    prox,
    sampling,
    stepsize,
    util,
)

from .solver import SAG as SAG
from .solver import SAGA as SAGA
from .solver import SVRG as SVRG
from .solver import Finito as Finito
from .solver import FinitoState as FinitoState
from .solver import IncrementalIterator as IncrementalIterator
from .solver import IncrementalSolver as IncrementalSolver
from .solver import SAGAState as SAGAState
from .solver import SAGState as SAGState
from .solver import SVRGState as SVRGState
from .solver import solution as solution

Sweeping = sampling.Sweeping
make_sampler = sampling.make_sampler
StepsizeRule = stepsize.StepsizeRule
SmoothFunction = functions.SmoothFunction
LeastSquares = functions.LeastSquares
Regularizer = functions.Regularizer
Zero = functions.Zero
NormL1 = functions.NormL1
SqrNormL2 = functions.SqrNormL2
ElasticNet = functions.ElasticNet
NonNegative = functions.NonNegative
Box = functions.Box
prox_const = prox.prox_const
prox_l1 = prox.prox_l1
prox_elastic_net = prox.prox_elastic_net
prox_l2_squared = prox.prox_l2_squared
prox_nonnegative = prox.prox_nonnegative
prox_box = prox.prox_box
Logger = logger.Logger
default_floating_dtype = util.default_floating_dtype
inexact_asarray = util.inexact_asarray
CIAOptsError = errors.CIAOptsError
ConfigurationError = errors.ConfigurationError
DimensionMismatchError = errors.DimensionMismatchError
NumericDomainError = errors.NumericDomainError

__all__ = (
    "Finito",
    "FinitoState",
    "SAGA",
    "SAGAState",
    "SAG",
    "SAGState",
    "SVRG",
    "SVRGState",
    "IncrementalIterator",
    "IncrementalSolver",
    "solution",
    "Sweeping",
    "make_sampler",
    "StepsizeRule",
    "SmoothFunction",
    "LeastSquares",
    "Regularizer",
    "Zero",
    "NormL1",
    "SqrNormL2",
    "ElasticNet",
    "NonNegative",
    "Box",
    "prox_const",
    "prox_l1",
    "prox_elastic_net",
    "prox_l2_squared",
    "prox_nonnegative",
    "prox_box",
    "Logger",
    "default_floating_dtype",
    "inexact_asarray",
    "CIAOptsError",
    "ConfigurationError",
    "DimensionMismatchError",
    "NumericDomainError",
)

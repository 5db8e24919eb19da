"""ekfilter: Extended Kalman Filter for nonlinear dynamic systems.

The package estimates the state of a discrete-time stochastic system with
measurements of the form::

    X_{k + 1} = f(X_k, U_k) + W_k
    Z_k = h(X_k) + V_k

Where

    - k   - integer epoch index
    - X_k - state vector
    - U_k - control input vector
    - W_k - process noise vector with covariance Q_k
    - Z_k - measurement vector
    - V_k - measurement noise vector with covariance R_k
    - f   - process function
    - h   - measurement function

The filter keeps its estimate in `ekfilter.matrix.Matrix` objects, which are
column-major views over caller owned storage, and updates them in place. The
functions ``f`` and ``h`` together with their Jacobians are provided by an
implementation of `ekfilter.SystemModel`. A filter is created with
`init_filter` and then advanced with `predict` and `correct` in any order.
These operations report problems by returning a `Status` and leave the
estimate unchanged when they don't succeed.

The correction uses a Cholesky factorization of the innovation covariance and
forward substitutions instead of a matrix inverse, see [1]_ for the general
theory. Refer to `ekfilter.examples` for examples of correctly defined
problems and to `run_ekf` for processing a whole measurement record.

References
----------
.. [1] J. L. Crassidis, J. L. Junkins, "Optimal Estimation of Dynamic Systems",
   2nd edition
"""
from . import examples, matrix, util
from .matrix import Matrix
from .ekf import (FilterContext, FunctionModel, Status, SystemModel, correct,
                  init_filter, predict, run_ekf)

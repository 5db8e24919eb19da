"""Extended Kalman Filter."""
import abc
import enum
import logging
from dataclasses import dataclass

import numpy as np
from numpy.linalg import LinAlgError

from .matrix import (Matrix, ShapeError, add, cholesky, forward_substitution,
                     multiply, subtract, transpose)
from .util import Bunch
from ._common import check_input_arrays, check_controls, check_measurements

logger = logging.getLogger(__name__)


class Status(enum.Enum):
    """Outcome of a filter operation."""
    OK = 0
    CALLBACK_FAILED = 1
    COMPUTATION_FAILED = 2
    PARAMETER_ERROR = 3


class SystemModel(abc.ABC):
    """Process and measurement model of a filtered system.

    The filter calls the model to get predictions together with their
    linearization. Output matrices are allocated by the filter with the
    expected shape and must be filled entirely. Implementations must not keep
    references to the passed matrices after returning.
    """

    @abc.abstractmethod
    def transition(self, xp, Jf, x, u, data):
        """Predict the next state and linearize the process function.

        Parameters
        ----------
        xp : Matrix, shape (n_states, 1)
            Output for ``f(x, u)``.
        Jf : Matrix, shape (n_states, n_states)
            Output for the Jacobian of ``f`` with respect to ``x``.
        x : Matrix, shape (n_states, 1)
            Current state, must not be modified.
        u : object
            Control input as passed to `predict`.
        data : object
            User data bound to the filter context.

        Returns
        -------
        Status
            ``Status.OK`` if the outputs are valid.
        """

    @abc.abstractmethod
    def measurement(self, zp, Jh, x, data):
        """Predict the measurement and linearize the measurement function.

        Parameters
        ----------
        zp : Matrix, shape (n_meas, 1)
            Output for ``h(x)``.
        Jh : Matrix, shape (n_meas, n_states)
            Output for the Jacobian of ``h`` with respect to ``x``.
        x : Matrix, shape (n_states, 1)
            Current state, must not be modified.
        data : object
            User data bound to the filter context.

        Returns
        -------
        Status
            ``Status.OK`` if the outputs are valid.
        """


class FunctionModel(SystemModel):
    """Model defined by two plain functions.

    The functions have the signatures of `SystemModel.transition` and
    `SystemModel.measurement` without ``self``.
    """
    def __init__(self, transition, measurement):
        self._transition = transition
        self._measurement = measurement

    def transition(self, xp, Jf, x, u, data):
        return self._transition(xp, Jf, x, u, data)

    def measurement(self, zp, Jh, x, data):
        return self._measurement(zp, Jh, x, data)


@dataclass
class FilterContext:
    """State of a filter.

    Use `init_filter` to create a validated context. `x` and `P` are updated
    in place by `predict` and `correct`.

    Parameters
    ----------
    x : Matrix, shape (n_states, 1)
        State estimate.
    P : Matrix, shape (n_states, n_states)
        Error covariance.
    model : SystemModel
        Process and measurement model.
    data : object
        User data passed unchanged to the model.
    """
    x: Matrix
    P: Matrix
    model: SystemModel
    data: object = None


def init_filter(x, P, model, data=None):
    """Create a filter context.

    Parameters
    ----------
    x : Matrix, shape (n_states, 1)
        Initial state, the filter updates it in place.
    P : Matrix, shape (n_states, n_states)
        Initial error covariance, the filter updates it in place.
    model : SystemModel
        Process and measurement model.
    data : object, optional
        User data passed to the model. Default is None.

    Returns
    -------
    status : Status
        ``Status.PARAMETER_ERROR`` if the arguments are missing, their
        dimensions don't match or `x` or `P` is read-only, ``Status.OK``
        otherwise.
    context : FilterContext or None
        Created context, None on failure.
    """
    if (not isinstance(x, Matrix) or not isinstance(P, Matrix) or
            not isinstance(model, SystemModel)):
        logger.debug("Filter initialization rejected: invalid arguments")
        return Status.PARAMETER_ERROR, None
    if x.rows != P.rows or x.rows != P.cols:
        logger.debug("Filter initialization rejected: x is %dx%d, P is %dx%d",
                     x.rows, x.cols, P.rows, P.cols)
        return Status.PARAMETER_ERROR, None
    if not _is_writeable(x, P):
        logger.debug("Filter initialization rejected: read-only storage")
        return Status.PARAMETER_ERROR, None
    return Status.OK, FilterContext(x, P, model, data)


def _is_writeable(*matrices):
    return all(m.elements.flags.writeable for m in matrices)


def _commit(target, value):
    target.array[...] = value.array


def predict(ctx, u, Q):
    """Predict the filter state to the next epoch.

    Computes ``x = f(x, u)`` and ``P = Jf @ P @ Jf.T + Q``. The context is
    updated only if the whole prediction succeeds.

    Parameters
    ----------
    ctx : FilterContext
        Filter context.
    u : object
        Control input passed to `SystemModel.transition`.
    Q : Matrix, shape (n_states, n_states)
        Process noise covariance.

    Returns
    -------
    Status
        ``Status.PARAMETER_ERROR`` for missing arguments or read-only state,
        ``Status.CALLBACK_FAILED`` if the model failed,
        ``Status.COMPUTATION_FAILED`` if the model outputs or `Q` have
        inconsistent shapes, ``Status.OK`` otherwise.
    """
    if (ctx is None or u is None or not isinstance(Q, Matrix) or
            not _is_writeable(ctx.x, ctx.P)):
        logger.debug("Prediction rejected: invalid arguments")
        return Status.PARAMETER_ERROR

    n_states = ctx.x.rows
    xp = Matrix.zeros(n_states, ctx.x.cols)
    Jf = Matrix.zeros(n_states, n_states)

    status = ctx.model.transition(xp, Jf, ctx.x, u, ctx.data)
    if status is not Status.OK:
        logger.debug("Transition callback returned %s", status)
        return Status.CALLBACK_FAILED

    try:
        if xp.shape != ctx.x.shape:
            raise ShapeError("Predicted state is {}x{}, state is {}x{}"
                             .format(xp.rows, xp.cols, ctx.x.rows, ctx.x.cols))
        JfP = multiply(Jf, ctx.P, Matrix.zeros(n_states, n_states))
        Jft = transpose(Jf, Matrix.zeros(n_states, n_states))
        Pp = multiply(JfP, Jft, Matrix.zeros(n_states, n_states))
        Pp = add(Pp, Q, Pp)
    except (ShapeError, LinAlgError) as e:
        logger.debug("Prediction failed: %s", e)
        return Status.COMPUTATION_FAILED

    _commit(ctx.x, xp)
    _commit(ctx.P, Pp)
    return Status.OK


def correct(ctx, z, R):
    """Correct the filter state with a measurement.

    The Kalman gain is never formed explicitly. With the Cholesky factor ``L``
    of the innovation covariance ``S = Jh @ P @ Jh.T + R = L @ L.T`` and
    ``U = (L \\ (P @ Jh.T).T).T`` the update is::

        x = x + U @ (L \\ (z - h(x)))
        P = P - U @ U.T

    The context is updated only if the whole correction succeeds.

    Parameters
    ----------
    ctx : FilterContext
        Filter context.
    z : Matrix, shape (n_meas, 1)
        Measurement vector.
    R : Matrix, shape (n_meas, n_meas)
        Measurement noise covariance.

    Returns
    -------
    Status
        ``Status.PARAMETER_ERROR`` for missing arguments, read-only state or
        if `z` and `R` don't match, ``Status.CALLBACK_FAILED`` if the model
        failed, ``Status.COMPUTATION_FAILED`` if the model outputs have
        inconsistent shapes or the innovation covariance is not positive
        definite, ``Status.OK`` otherwise.
    """
    if (ctx is None or not isinstance(z, Matrix) or not isinstance(R, Matrix)
            or z.rows != R.rows or z.rows != R.cols
            or not _is_writeable(ctx.x, ctx.P)):
        logger.debug("Correction rejected: invalid arguments")
        return Status.PARAMETER_ERROR

    n_states = ctx.x.rows
    n_meas = z.rows
    zp = Matrix.zeros(n_meas, z.cols)
    Jh = Matrix.zeros(n_meas, n_states)

    status = ctx.model.measurement(zp, Jh, ctx.x, ctx.data)
    if status is not Status.OK:
        logger.debug("Measurement callback returned %s", status)
        return Status.CALLBACK_FAILED

    try:
        Jht = transpose(Jh, Matrix.zeros(n_states, n_meas))
        PJht = multiply(ctx.P, Jht, Matrix.zeros(n_states, n_meas))

        S = multiply(Jh, PJht, Matrix.zeros(n_meas, n_meas))
        S = add(S, R, S)
        L = cholesky(S, Matrix.zeros(n_meas, n_meas))

        U = transpose(PJht, Matrix.zeros(n_meas, n_states))
        U = forward_substitution(L, U, U)
        U = transpose(U, U)

        dz = subtract(z, zp, Matrix.zeros(n_meas, z.cols))
        w = forward_substitution(L, dz, dz)
        x = multiply(U, w, Matrix.zeros(n_states, w.cols))
        x = add(ctx.x, x, x)

        Ut = transpose(U, Matrix.zeros(n_meas, n_states))
        P = multiply(U, Ut, Matrix.zeros(n_states, n_states))
        P = subtract(ctx.P, P, P)
    except (ShapeError, LinAlgError) as e:
        logger.debug("Correction failed: %s", e)
        return Status.COMPUTATION_FAILED

    _commit(ctx.x, x)
    _commit(ctx.P, P)
    return Status.OK


def run_ekf(X0, P0, model, Q, n_epochs, measurements=None, u=None, data=None):
    """Run Extended Kalman Filter over a sequence of epochs.

    At each epoch the available measurement is processed first, then the state
    is predicted to the next epoch.

    Parameters
    ----------
    X0 : array_like, shape (n_states,)
        Initial state estimate.
    P0 : array_like, shape (n_states, n_states)
        Initial error covariance.
    model : SystemModel
        Process and measurement model.
    Q : array_like, shape (n_epochs - 1, n_states, n_states) or (n_states, n_states)
        Process noise covariance matrix. Either constant or specified for each
        transition.
    n_epochs : int
        Number of epochs for estimation.
    measurements : tuple or None, optional
        Measurements as a tuple ``(epochs, Z, R)``, where

            - epochs : array_like, shape (n,)
                Strictly increasing integer epoch indices in [0, n_epochs)
                at which the measurement is available.
            - Z : array_like, shape (n, m)
                Measurement vectors.
            - R : array_like, shape (n, m, m) or (m, m)
                Measurement noise covariance matrix specified for each epoch or
                a single matrix, constant for each epoch.

        None (default) means no measurements.
    u : array_like, shape (n_epochs - 1, n_inputs), (n_inputs,) or (), optional
        Control inputs for each transition or a single constant input, a
        scalar is a single input with one component.
        None (default) corresponds to a single zero input. Each input is passed
        to the model as a Matrix of shape (n_inputs, 1).
    data : object, optional
        User data passed to the model.

    Returns
    -------
    Bunch with the following fields:

        X : ndarray, shape (n_epochs, n_states)
            State estimates.
        P : ndarray, shape (n_epochs, n_states, n_states)
            Error covariance estimates.

    Raises
    ------
    ValueError
        If the input shapes are inconsistent or measurement epochs are out of
        range.
    RuntimeError
        If a filter operation fails.
    """
    X0, P0, Q, n_states = check_input_arrays(X0, P0, Q, n_epochs)
    epochs, Z, R = check_measurements(measurements, n_epochs)
    u = check_controls(u, n_epochs)

    x = Matrix.from_array(X0)
    P = Matrix.from_array(P0)
    status, ctx = init_filter(x, P, model, data)
    if status is not Status.OK:
        raise ValueError("`model` must be an instance of SystemModel")

    X = np.empty((n_epochs, n_states))
    P_all = np.empty((n_epochs, n_states, n_states))

    for k in range(n_epochs):
        index = np.searchsorted(epochs, k)
        if index < len(epochs) and epochs[index] == k:
            status = correct(ctx, Matrix.from_array(Z[index]),
                             Matrix.from_array(R[index]))
            if status is not Status.OK:
                raise RuntimeError("Correction failed at epoch {} with {}"
                                   .format(k, status.name))

        X[k] = x.array[:, 0]
        P_all[k] = P.array

        if k + 1 < n_epochs:
            status = predict(ctx, Matrix.from_array(u[k]),
                             Matrix.from_array(Q[k]))
            if status is not Status.OK:
                raise RuntimeError("Prediction failed at epoch {} with {}"
                                   .format(k, status.name))

    return Bunch(X=X, P=P_all)

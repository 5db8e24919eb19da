"""Example estimation problems."""
from dataclasses import dataclass
import numpy as np
from .ekf import Status, SystemModel
from .matrix import Matrix, ShapeError, add, multiply


@dataclass
class ProblemExample:
    """Example of an estimation problem.

    Parameters
    ----------
    X0 : ndarray, shape (n_states,)
        Initial state estimate.
    P0 : ndarray, shape (n_states, n_states)
        Initial covariance.
    model : SystemModel
        Process and measurement model.
    Q : ndarray, shape (n_states, n_states)
        Process noise covariance matrix.
    u : ndarray, shape (n_epochs - 1, n_inputs)
        Control inputs.
    n_epochs : int
        Number of epochs for estimation.
    measurements : tuple
        Measurements structure ``(epochs, Z, R)``.
        See `ekfilter.run_ekf` for a detailed definition.
    Xt : ndarray, shape (n_epochs, n_states)
        True state for each epoch.
    """
    X0 : np.ndarray
    P0 : np.ndarray
    model : SystemModel
    Q : np.ndarray
    u : np.ndarray
    n_epochs : int
    measurements : tuple
    Xt : np.ndarray


class ConstantAccelerationModel(SystemModel):
    """Motion along a line with a known acceleration.

    The state is ``[position, velocity]``, the control input is the
    acceleration and the position is measured::

        p[k+1] = p[k] + dt * v[k] + dt**2 / 2 * a[k]
        v[k+1] = v[k] + dt * a[k]
        z[k] = p[k]
    """
    def __init__(self, time_step):
        self.time_step = time_step
        self._B = Matrix.from_array([time_step ** 2 / 2, time_step])

    def transition(self, xp, Jf, x, u, data):
        Jf[...] = [[1, self.time_step], [0, 1]]
        try:
            Bu = multiply(self._B, u, Matrix.zeros(2, 1))
            add(multiply(Jf, x, xp), Bu, xp)
        except ShapeError:
            return Status.COMPUTATION_FAILED
        return Status.OK

    def measurement(self, zp, Jh, x, data):
        Jh[...] = [[1, 0]]
        zp[0, 0] = x[0, 0]
        return Status.OK


class PendulumModel(SystemModel):
    """Pendulum with linear friction driven by an external force.

    The continuous time model is::

        dx1 / dt = x2
        dx2 / dt = -omega**2 * sin(x1) - 2 * eta * omega * x2 + u

    discretized with the Euler method. The sine of the angle ``x1`` is
    measured.
    """
    def __init__(self, time_step, period, eta):
        self.time_step = time_step
        self.omega = 2 * np.pi / period
        self.eta = eta

    def f(self, X, u=0.0):
        tau = self.time_step
        return np.array([
            X[0] + tau * X[1],
            X[1] + tau * (-self.omega ** 2 * np.sin(X[0])
                          - 2 * self.eta * self.omega * X[1] + u)
        ])

    def transition(self, xp, Jf, x, u, data):
        tau = self.time_step
        X = x[:, 0]
        xp[:, 0] = self.f(X, u[0, 0])
        Jf[...] = [[1, tau],
                   [-tau * self.omega ** 2 * np.cos(X[0]),
                    1 - 2 * tau * self.eta * self.omega]]
        return Status.OK

    def measurement(self, zp, Jh, x, data):
        zp[0, 0] = np.sin(x[0, 0])
        Jh[...] = [[np.cos(x[0, 0]), 0]]
        return Status.OK


def generate_constant_acceleration(
    n_epochs=1000,
    acceleration=0.1,
    time_step=0.1,
    sigma_process=0.2,
    sigma_measurement=10.0,
    rng=0,
):
    """Generate data for an example of motion with a constant acceleration.

    The body starts at rest at zero position, so the true trajectory is::

        p[k] = a / 2 * (k * dt)**2
        v[k] = a * k * dt

    Noisy position measurements are available at each epoch. The process noise
    covariance corresponds to a random acceleration with standard deviation
    `sigma_process` constant during a time step. The filter is initialized
    with the exact state and the process noise covariance.

    Parameters
    ----------
    n_epochs : int
        Number of epochs for simulation.
    acceleration : float
        Acceleration in m/s^2.
    time_step : float
        Time step in seconds.
    sigma_process : float
        Standard deviation of acceleration noise assumed by the filter.
    sigma_measurement : float
        Accuracy of position measurements in m.
    rng : None, int or `numpy.random.Generator`
        Seed to create or already created Generator. None (default) corresponds
        to nondeterministic seeding.

    Returns
    -------
    ProblemExample
    """
    rng = np.random.default_rng(rng)
    dt = time_step
    G = np.array([[dt ** 2 / 2], [dt]])
    Q = sigma_process ** 2 * G @ G.T

    t = dt * np.arange(n_epochs)
    Xt = np.column_stack((0.5 * acceleration * t ** 2, acceleration * t))
    R = np.array([[sigma_measurement ** 2]])
    Z = Xt[:, :1] + sigma_measurement * rng.standard_normal((n_epochs, 1))
    u = np.full((n_epochs - 1, 1), acceleration)

    return ProblemExample(np.zeros(2), Q, ConstantAccelerationModel(dt), Q, u,
                          n_epochs, (np.arange(n_epochs), Z, R), Xt)


def generate_nonlinear_pendulum(
    n_epochs=1000,
    X0=np.array([0.5 * np.pi, 0]),
    P0=np.diag([0.1**2, 0.05**2]),
    tau=0.1,
    T=10.0,
    eta=0.1,
    qf=0.1,
    sigma_measurement=0.05,
    rng=0
):
    """Generate data for an example of a nonlinear pendulum with friction.

    See `PendulumModel` for the system equations. The external force is zero
    in the model and is modeled as a random white sequence in the simulation.

    Parameters
    ----------
    n_epochs : int
        Number of epochs for simulation.
    X0 : array_like, shape (2,)
        Initial state estimate. The true initial state is drawn from `X0` and
        `P0`.
    P0 : array_like, shape (2, 2)
        Initial state covariance.
    tau : float
        Time step in seconds.
    T : float
        Pendulum period in seconds.
    eta : float
        Dimensionless friction coefficient.
    qf : float
        Intensity of force process in rad/s/sqrt(s).
    sigma_measurement : float
        Accuracy of the angle sine measurements.
    rng : None, int or `numpy.random.Generator`
        Seed to create or already created Generator. None (default) corresponds
        to nondeterministic seeding.

    Returns
    -------
    ProblemExample
    """
    rng = np.random.default_rng(rng)
    X0 = np.asarray(X0, dtype=float)
    P0 = np.asarray(P0, dtype=float)
    model = PendulumModel(tau, T, eta)
    Q = np.diag([0, tau * qf ** 2])
    R = np.array([[sigma_measurement ** 2]])

    Xt = np.empty((n_epochs, 2))
    Z = np.empty((n_epochs, 1))
    X = rng.multivariate_normal(X0, P0)
    for k in range(n_epochs):
        Xt[k] = X
        Z[k] = np.sin(X[0]) + sigma_measurement * rng.standard_normal()
        if k + 1 < n_epochs:
            X = model.f(X) + rng.multivariate_normal(np.zeros(2), Q)

    return ProblemExample(X0, P0, model, Q, np.zeros((n_epochs - 1, 1)),
                          n_epochs, (np.arange(n_epochs), Z, R), Xt)

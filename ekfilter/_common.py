import numpy as np


def check_input_arrays(X0, P0, Q, n_epochs):
    X0 = np.asarray(X0, dtype=float)
    P0 = np.asarray(P0, dtype=float)
    Q = np.asarray(Q, dtype=float)

    n_states = len(X0)
    if Q.ndim == 2:
        Q = np.resize(Q, (n_epochs - 1, *Q.shape))

    if (X0.shape != (n_states,) or P0.shape != (n_states, n_states) or
            Q.shape != (n_epochs - 1, n_states, n_states)):
        raise ValueError("Inconsistent input shapes")

    return X0, P0, Q, n_states


def check_controls(u, n_epochs):
    if u is None:
        return np.zeros((n_epochs - 1, 1))

    u = np.atleast_1d(np.asarray(u, dtype=float))
    if u.ndim == 1:
        u = np.resize(u, (n_epochs - 1, len(u)))
    if u.ndim != 2 or len(u) != n_epochs - 1 or u.shape[-1] == 0:
        raise ValueError("Inconsistent shape of control inputs")
    return u


def check_measurements(measurements, n_epochs):
    if measurements is None:
        return np.empty(0, dtype=int), np.empty((0, 1)), np.empty((0, 1, 1))

    epochs, Z, R = measurements
    epochs = np.asarray(epochs)
    Z = np.asarray(Z, dtype=float)
    R = np.asarray(R, dtype=float)
    if R.ndim == 2:
        R = np.resize(R, (len(epochs), *R.shape))

    n = len(epochs)
    m = Z.shape[-1]
    if epochs.shape != (n,) or Z.shape != (n, m) or R.shape != (n, m, m):
        raise ValueError("Inconsistent shapes in measurements")
    if n == 0:
        return epochs.astype(int), Z, R
    if not np.issubdtype(epochs.dtype, np.integer):
        raise ValueError("Measurement epochs must be integers")
    if np.any((epochs < 0) | (epochs >= n_epochs)):
        raise ValueError("Measurement epochs must be within [0, n_epochs)")
    if np.any(np.diff(epochs) <= 0):
        raise ValueError("Measurement epochs must be strictly increasing")

    return epochs, Z, R

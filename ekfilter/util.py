"""Utility functions."""
import numpy as np


class Bunch(dict):
    """Result container, a dictionary whose items are also attributes.

    The representation lists the fields, array values by their shapes.
    """
    def __getattr__(self, name):
        if name not in self:
            raise AttributeError(name)
        return self[name]

    def __setattr__(self, name, value):
        self[name] = value

    def __delattr__(self, name):
        if name not in self:
            raise AttributeError(name)
        del self[name]

    def __dir__(self):
        return list(self)

    def __repr__(self):
        fields = []
        for name, value in self.items():
            shape = np.shape(value)
            if shape:
                fields.append("{}: array{}".format(name, shape))
            else:
                fields.append("{}: {!r}".format(name, value))
        return "{}({})".format(type(self).__name__, ", ".join(fields))


def compute_rms(data):
    """Compute root-mean-square of data along 0 axis."""
    return np.mean(np.square(data), axis=0) ** 0.5


def compute_normalized_errors(X, Xt, P):
    """Compute estimation errors normalized by their standard deviations.

    Parameters
    ----------
    X : array_like, shape (n_epochs, n_states)
        State estimates.
    Xt : array_like, shape (n_epochs, n_states)
        True states.
    P : array_like, shape (n_epochs, n_states, n_states)
        Error covariance estimates.

    Returns
    -------
    ndarray, shape (n_epochs, n_states)
        Errors divided by square roots of the covariance diagonal. For a
        consistent filter their root-mean-square is close to 1.
    """
    return (np.asarray(X) - Xt) / np.diagonal(P, axis1=1, axis2=2) ** 0.5

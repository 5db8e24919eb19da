"""Dense matrix type and primitives used by the filter recursion.

A `Matrix` is a column-major view over a caller owned 1-D buffer with declared
row and column counts. Primitives write their result into an output matrix
passed by the caller, possibly changing its declared shape but never its number
of elements. Every primitive computes into scratch first and writes the output
only on success, so an output may alias any of the inputs and a failing call
leaves the output untouched.
"""
import numpy as np
from numpy.linalg import LinAlgError
from scipy import linalg


class ShapeError(ValueError):
    """Matrix dimensions are incompatible with the requested operation."""


class Matrix:
    """Dense column-major matrix over externally owned storage.

    Parameters
    ----------
    elements : ndarray, shape (rows * cols,)
        Contiguous writeable storage in column-major order. An ndarray must
        have float64 dtype and is used without copying, so changes made
        through the matrix are visible to the owner of the array. Other
        sequences are copied into new storage.
    rows, cols : int
        Declared dimensions.
    """
    __slots__ = ('elements', 'rows', 'cols')

    def __init__(self, elements, rows, cols):
        if isinstance(elements, np.ndarray):
            if elements.dtype != np.float64:
                raise ValueError("Matrix storage must be float64, got {}"
                                 .format(elements.dtype))
        else:
            elements = np.asarray(elements, dtype=float)
        if elements.ndim != 1 or not elements.flags.c_contiguous:
            raise ValueError("Matrix storage must be a contiguous 1-D array")
        if not elements.flags.writeable:
            raise ValueError("Matrix storage must be writeable")
        if rows < 1 or cols < 1 or rows * cols != elements.size:
            raise ShapeError("Storage of {} elements can't hold a {}x{} matrix"
                             .format(elements.size, rows, cols))
        self.elements = elements
        self.rows = rows
        self.cols = cols

    @classmethod
    def zeros(cls, rows, cols):
        """Create a matrix of zeros with its own storage."""
        return cls(np.zeros(rows * cols), rows, cols)

    @classmethod
    def from_array(cls, array):
        """Create a matrix with its own storage from array_like data.

        A scalar becomes a 1x1 matrix and a 1-D array becomes a column.
        """
        array = np.asarray(array, dtype=float)
        if array.ndim == 0:
            array = array.reshape(1, 1)
        elif array.ndim == 1:
            array = array[:, None]
        elif array.ndim != 2:
            raise ValueError("Expected at most 2 dimensions, got {}"
                             .format(array.ndim))
        rows, cols = array.shape
        return cls(array.ravel(order='F').copy(), rows, cols)

    @property
    def size(self):
        return self.rows * self.cols

    @property
    def shape(self):
        return self.rows, self.cols

    @property
    def array(self):
        """Writable 2-D view of the storage with the declared shape."""
        return self.elements.reshape((self.rows, self.cols), order='F')

    def __getitem__(self, key):
        return self.array[key]

    def __setitem__(self, key, value):
        self.array[key] = value

    def __repr__(self):
        return "Matrix({}x{}, {})".format(self.rows, self.cols,
                                          self.array.tolist())


def _commit(out, rows, cols, values):
    out.rows = rows
    out.cols = cols
    out.array[...] = values
    return out


def multiply(A, B, C):
    """Compute ``C = A @ B``.

    `C` must have ``A.rows * B.cols`` elements and is resized to
    ``(A.rows, B.cols)``. It may alias `A` or `B`.
    """
    if A.cols != B.rows or C.size != A.rows * B.cols:
        raise ShapeError("Can't multiply {}x{} by {}x{} into {} elements"
                         .format(A.rows, A.cols, B.rows, B.cols, C.size))
    return _commit(C, A.rows, B.cols, A.array @ B.array)


def _check_elementwise(A, B, C):
    if A.shape != B.shape or C.shape != A.shape:
        raise ShapeError("Elementwise operation on {}, {} into {}"
                         .format(A.shape, B.shape, C.shape))


def add(A, B, C):
    """Compute ``C = A + B`` elementwise, all shapes must be equal."""
    _check_elementwise(A, B, C)
    np.add(A.array, B.array, out=C.array)
    return C


def subtract(A, B, C):
    """Compute ``C = A - B`` elementwise, all shapes must be equal."""
    _check_elementwise(A, B, C)
    np.subtract(A.array, B.array, out=C.array)
    return C


def transpose(A, At):
    """Compute ``At = A.T``, `At` must have the same number of elements."""
    if A.size != At.size:
        raise ShapeError("Can't transpose {}x{} into {} elements"
                         .format(A.rows, A.cols, At.size))
    return _commit(At, A.cols, A.rows, A.array.T.copy())


def cholesky(A, L):
    """Compute the lower triangular Cholesky factor ``L`` with ``A = L @ L.T``.

    Only the lower triangle of `A` is read, so `A` is assumed symmetric. The
    factorization runs column by column: the pivot is replaced by its square
    root, the column below it is scaled by the pivot and the outer product of
    the scaled column is subtracted from the trailing lower submatrix.

    Raises
    ------
    ShapeError
        If `A` is not square or `L` has a different number of elements.
    numpy.linalg.LinAlgError
        If a pivot is not strictly positive, i.e. `A` is not positive definite.

    References
    ----------
    .. [1] L. Vandenberghe, "Cholesky factorization", lecture notes for
       EE103, UCLA.
    """
    if A.rows != A.cols or L.size != A.size:
        raise ShapeError("Can't factorize {}x{} into {} elements"
                         .format(A.rows, A.cols, L.size))

    n = A.rows
    work = np.tril(A.array)
    for j in range(n):
        pivot = work[j, j]
        if not pivot > 0:
            raise LinAlgError("Matrix is not positive definite, pivot {} is {}"
                              .format(j, pivot))
        work[j, j] = pivot ** 0.5
        work[j + 1:, j] /= work[j, j]
        column = work[j + 1:, j]
        work[j + 1:, j + 1:] -= np.tril(np.outer(column, column))

    return _commit(L, n, n, work)


def forward_substitution(L, B, X):
    """Solve ``L @ X = B`` for lower triangular `L`.

    `X` must have ``L.cols * B.cols`` elements and is resized to
    ``(L.cols, B.cols)``. Only the lower triangle of `L` is read.

    Raises
    ------
    ShapeError
        If `L` is not square or the dimensions don't match.
    numpy.linalg.LinAlgError
        If `L` has a zero on the diagonal.
    """
    if L.rows != B.rows or X.size != L.cols * B.cols:
        raise ShapeError("Can't solve {}x{} system for {}x{} into {} elements"
                         .format(L.rows, L.cols, B.rows, B.cols, X.size))
    if L.rows != L.cols:
        raise ShapeError("Triangular matrix must be square, got {}x{}"
                         .format(L.rows, L.cols))
    diagonal = np.diagonal(L.array)
    if np.any(diagonal == 0):
        raise LinAlgError("Triangular matrix is singular, zero at diagonal {}"
                          .format(np.flatnonzero(diagonal == 0)[0]))
    solution = linalg.solve_triangular(L.array, B.array, lower=True,
                                       check_finite=False)
    return _commit(X, L.cols, B.cols, solution)

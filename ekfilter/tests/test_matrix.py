import numpy as np
from numpy.linalg import LinAlgError
from numpy.testing import assert_allclose, assert_equal
import pytest
from scipy import linalg
from ekfilter.matrix import (Matrix, ShapeError, add, cholesky,
                             forward_substitution, multiply, subtract, transpose)


def random_spd(rng, n):
    A = rng.standard_normal((n, n))
    return A @ A.T + n * np.eye(n)


def sentinel(rows, cols):
    return Matrix.from_array(np.full((rows, cols), 7.0))


def test_matrix_storage():
    elements = np.arange(6.0)
    A = Matrix(elements, 2, 3)
    assert_equal(A.array, [[0, 2, 4], [1, 3, 5]])

    A[1, 2] = -1
    assert elements[5] == -1
    assert A.shape == (2, 3)
    assert A.size == 6

    B = Matrix.from_array([[1, 2], [3, 4]])
    assert_equal(B.elements, [1, 3, 2, 4])
    assert Matrix.from_array([1, 2, 3]).shape == (3, 1)
    assert Matrix.from_array(5).shape == (1, 1)

    C = Matrix([1, 2, 3, 4], 2, 2)
    assert C.elements.dtype == np.float64

    with pytest.raises(ShapeError):
        Matrix(np.zeros(5), 2, 3)
    with pytest.raises(ValueError):
        Matrix(np.zeros(12)[::2], 2, 3)
    with pytest.raises(ValueError):
        Matrix.from_array(np.zeros((2, 2, 2)))


def test_matrix_storage_rejects_copies():
    single = np.zeros(6, dtype=np.float32)
    with pytest.raises(ValueError, match="float64"):
        Matrix(single, 2, 3)
    with pytest.raises(ValueError, match="float64"):
        Matrix(np.arange(4), 2, 2)

    frozen = np.zeros(4)
    frozen.flags.writeable = False
    with pytest.raises(ValueError, match="writeable"):
        Matrix(frozen, 2, 2)


def test_multiply():
    rng = np.random.default_rng(0)
    A = Matrix.from_array(rng.standard_normal((3, 4)))
    B = Matrix.from_array(rng.standard_normal((4, 2)))
    C = Matrix.zeros(2, 3)
    assert multiply(A, B, C) is C
    assert C.shape == (3, 2)
    assert_allclose(C.array, A.array @ B.array, rtol=1e-14)

    I = Matrix.from_array(np.eye(4))
    assert_allclose(multiply(A, I, Matrix.zeros(3, 4)).array, A.array, rtol=1e-15)

    C = sentinel(4, 4)
    with pytest.raises(ShapeError):
        multiply(B, A, C)
    assert C.shape == (4, 4)
    assert_equal(C.array, 7.0)

    C = sentinel(3, 3)
    with pytest.raises(ShapeError):
        multiply(A, B, C)
    assert C.shape == (3, 3)
    assert_equal(C.array, 7.0)


def test_multiply_aliased():
    rng = np.random.default_rng(1)
    A0 = rng.standard_normal((3, 3))
    B0 = rng.standard_normal((3, 3))

    A = Matrix.from_array(A0)
    B = Matrix.from_array(B0)
    multiply(A, B, A)
    assert_allclose(A.array, A0 @ B0, rtol=1e-14)

    A = Matrix.from_array(A0)
    multiply(A, B, B)
    assert_allclose(B.array, A0 @ B0, rtol=1e-14)

    A = Matrix.from_array(A0)
    multiply(A, A, A)
    assert_allclose(A.array, A0 @ A0, rtol=1e-14)


def test_add_subtract():
    rng = np.random.default_rng(2)
    A = Matrix.from_array(rng.standard_normal((2, 3)))
    B = Matrix.from_array(rng.standard_normal((2, 3)))
    C = add(A, B, Matrix.zeros(2, 3))
    assert_allclose(C.array, A.array + B.array, rtol=1e-15)
    D = subtract(C, B, Matrix.zeros(2, 3))
    assert_allclose(D.array, A.array, rtol=1e-14, atol=1e-15)

    C = sentinel(2, 3)
    with pytest.raises(ShapeError):
        add(A, Matrix.zeros(3, 2), C)
    assert C.shape == (2, 3)
    assert_equal(C.array, 7.0)

    C = sentinel(3, 2)
    with pytest.raises(ShapeError):
        subtract(A, B, C)
    assert C.shape == (3, 2)
    assert_equal(C.array, 7.0)


def test_transpose():
    A0 = np.arange(6.0).reshape(2, 3)
    A = Matrix.from_array(A0)
    At = transpose(A, Matrix.zeros(6, 1))
    assert At.shape == (3, 2)
    assert_equal(At.array, A0.T)
    assert_equal(transpose(At, Matrix.zeros(1, 6)).array, A0)

    transpose(A, A)
    assert_equal(A.array, A0.T)

    At = sentinel(2, 2)
    with pytest.raises(ShapeError):
        transpose(A, At)
    assert At.shape == (2, 2)
    assert_equal(At.array, 7.0)


def test_cholesky():
    rng = np.random.default_rng(3)
    for n in [1, 2, 5]:
        A = Matrix.from_array(random_spd(rng, n))
        L = cholesky(A, Matrix.zeros(n, n))
        assert np.all(np.triu(L.array, 1) == 0)
        assert_allclose(L.array @ L.array.T, A.array, rtol=1e-12, atol=1e-12)
        assert_allclose(L.array, linalg.cholesky(A.array, lower=True),
                        rtol=1e-12, atol=1e-12)

    A = Matrix.from_array(random_spd(rng, 3))
    A0 = A.array.copy()
    cholesky(A, A)
    assert_allclose(A.array @ A.array.T, A0, rtol=1e-12, atol=1e-12)


def test_cholesky_not_positive_definite():
    L = sentinel(3, 3)
    for A in [np.diag([1.0, -2.0, 3.0]), np.zeros((3, 3)),
              np.array([[1.0, 2.0, 0], [2.0, 1.0, 0], [0, 0, 1.0]])]:
        with pytest.raises(LinAlgError):
            cholesky(Matrix.from_array(A), L)
        assert_equal(L.array, 7.0)

    L = sentinel(2, 3)
    with pytest.raises(ShapeError):
        cholesky(Matrix.zeros(2, 3), L)
    assert_equal(L.array, 7.0)
    L = sentinel(3, 3)
    with pytest.raises(ShapeError):
        cholesky(Matrix.from_array(np.eye(2)), L)
    assert_equal(L.array, 7.0)


def test_forward_substitution():
    rng = np.random.default_rng(4)
    L = Matrix.from_array(np.tril(rng.standard_normal((4, 4))) + 4 * np.eye(4))
    B = Matrix.from_array(rng.standard_normal((4, 3)))
    X = forward_substitution(L, B, Matrix.zeros(3, 4))
    assert X.shape == (4, 3)
    assert_allclose(L.array @ X.array, B.array, rtol=1e-12, atol=1e-14)

    B0 = B.array.copy()
    forward_substitution(L, B, B)
    assert_allclose(L.array @ B.array, B0, rtol=1e-12, atol=1e-14)

    X = sentinel(3, 3)
    with pytest.raises(ShapeError):
        forward_substitution(L, Matrix.zeros(3, 3), X)
    assert X.shape == (3, 3)
    assert_equal(X.array, 7.0)

    X = sentinel(4, 4)
    with pytest.raises(ShapeError):
        forward_substitution(L, B, X)
    assert X.shape == (4, 4)
    assert_equal(X.array, 7.0)


def test_forward_substitution_singular():
    L = Matrix.from_array(np.diag([1.0, 0.0, 2.0]))
    X = sentinel(3, 1)
    with pytest.raises(LinAlgError):
        forward_substitution(L, Matrix.from_array([1.0, 1.0, 1.0]), X)
    assert X.shape == (3, 1)
    assert_equal(X.array, 7.0)

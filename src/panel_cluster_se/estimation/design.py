"""Design matrix construction with reference-coded categorical predictors."""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from ..exceptions import InvalidConfiguration, SingularDesign

logger = logging.getLogger(__name__)

INTERCEPT = "Intercept"


@dataclass(frozen=True, eq=False)
class DesignMatrix:
    """Dense regressor matrix with named columns.

    Parameters
    ----------
    matrix : np.ndarray
        ``(n, k)`` float matrix. Column 0 is the intercept when present.
    column_names : tuple[str, ...]
        One name per column. Indicator columns are named
        ``"{predictor}[T.{level}]"``.
    reference_levels : Mapping
        ``{predictor: omitted_level}`` for every categorical predictor.
    """

    matrix: np.ndarray
    column_names: tuple[str, ...]
    reference_levels: Mapping[str, Hashable] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "matrix", np.array(self.matrix, dtype=np.float64))
        object.__setattr__(self, "column_names", tuple(self.column_names))
        if self.matrix.ndim != 2 or self.matrix.shape[1] != len(self.column_names):
            raise InvalidConfiguration(
                f"Matrix shape {self.matrix.shape} does not match "
                f"{len(self.column_names)} column names"
            )
        self.matrix.flags.writeable = False

    @property
    def n_obs(self) -> int:
        return self.matrix.shape[0]

    @property
    def n_params(self) -> int:
        return self.matrix.shape[1]

    def column_index(self, name: str) -> int:
        try:
            return self.column_names.index(name)
        except ValueError:
            raise KeyError(f"No design column named {name!r}") from None

    @staticmethod
    def _relative_pivots(matrix: np.ndarray, r: np.ndarray) -> np.ndarray:
        """``|R_jj| / ||x_j||``: the share of column j orthogonal to the columns
        before it. Independent of the units each column is measured in; zero
        for an all-zero column."""
        norms = np.linalg.norm(matrix, axis=0)
        diag = np.abs(np.diag(r))
        out = np.zeros_like(norms)
        np.divide(diag, norms, out=out, where=norms > 0)
        return out

    def qr(self, tol: float = 1e-10) -> tuple[np.ndarray, np.ndarray]:
        """Reduced QR factorization, checking full column rank.

        A column whose ``|R_jj|`` is at most ``tol`` times its own norm lies
        (numerically) in the span of the columns before it. Rescaling a column
        does not change the outcome.

        Raises
        ------
        SingularDesign
            If fewer rows than columns, or any column is collinear with the
            preceding ones within ``tol``.
        """
        n, k = self.matrix.shape
        if k == 0:
            raise SingularDesign("Design matrix has no columns")
        if n < k:
            raise SingularDesign(f"Design has {n} rows but {k} columns")
        if not self.matrix.any():
            raise SingularDesign("Design matrix is all zeros")

        q, r = np.linalg.qr(self.matrix, mode="reduced")
        deficient = np.flatnonzero(self._relative_pivots(self.matrix, r) <= tol)
        if deficient.size:
            names = [self.column_names[j] for j in deficient]
            raise SingularDesign(
                f"Design matrix is rank deficient (rank {k - deficient.size} < {k}); "
                f"collinear with preceding columns: {names}"
            )
        return q, r

    def rank(self, tol: float = 1e-10) -> int:
        """Numerical column rank, using the same tolerance rule as ``qr``."""
        if self.n_params == 0:
            return 0
        r = np.linalg.qr(self.matrix, mode="r")
        # With fewer rows than columns R has only n diagonal entries.
        m = min(r.shape)
        pivots = self._relative_pivots(self.matrix[:, :m], r[:m, :m])
        return int((pivots > tol).sum())

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.matrix, columns=list(self.column_names))


def _is_categorical(series: pd.Series) -> bool:
    return (
        isinstance(series.dtype, pd.CategoricalDtype)
        or pd.api.types.is_object_dtype(series)
        or pd.api.types.is_string_dtype(series)
    )


def _levels(series: pd.Series) -> list[Hashable]:
    if isinstance(series.dtype, pd.CategoricalDtype):
        present = set(series.unique())
        return [lvl for lvl in series.cat.categories if lvl in present]
    try:
        return sorted(series.unique())
    except TypeError:
        # Mixed, unorderable labels: fall back to order of appearance.
        return list(pd.unique(series))


def build_design_matrix(
    df: pd.DataFrame,
    predictors: Iterable[str],
    categorical: Iterable[str] | None = None,
    intercept: bool = True,
) -> DesignMatrix:
    """Build the regressor matrix for an OLS fit.

    Parameters
    ----------
    df : pd.DataFrame
        Source data.
    predictors : iterable of str
        Columns to include, in order.
    categorical : iterable of str, optional
        Predictors to expand into indicator columns. Object, string and
        category columns are expanded even if not listed here.
    intercept : bool
        Prepend a column of ones.

    Returns
    -------
    DesignMatrix
        Each categorical predictor with L levels contributes L - 1 indicators;
        the first level (sorted, or category order) is the omitted reference.

    Raises
    ------
    InvalidConfiguration
        Missing columns, missing or infinite values, or non-numeric
        non-categorical data.
    SingularDesign
        A predictor listed more than once.
    """
    predictors = [predictors] if isinstance(predictors, str) else list(predictors)
    categorical = set([categorical] if isinstance(categorical, str) else (categorical or []))

    missing = [col for col in predictors if col not in df.columns]
    unknown_cat = sorted(categorical - set(predictors))
    if missing:
        raise InvalidConfiguration(
            f"Missing predictor columns: {missing}. "
            f"Available: {sorted(df.columns.tolist())}"
        )
    if unknown_cat:
        raise InvalidConfiguration(f"Categorical columns not among predictors: {unknown_cat}")
    repeated = sorted({col for col in predictors if predictors.count(col) > 1})
    if repeated:
        raise SingularDesign(
            f"Predictors listed more than once give identical design columns: {repeated}"
        )

    n = len(df)
    columns: list[np.ndarray] = []
    names: list[str] = []
    references: dict[str, Hashable] = {}

    if intercept:
        columns.append(np.ones(n))
        names.append(INTERCEPT)

    for col in predictors:
        series = df[col]
        if series.isna().any():
            raise InvalidConfiguration(
                f"Predictor {col!r} has {int(series.isna().sum())} missing values"
            )

        if col in categorical or _is_categorical(series):
            levels = _levels(series)
            references[col] = levels[0]
            values = series.to_numpy()
            for level in levels[1:]:
                columns.append((values == level).astype(np.float64))
                names.append(f"{col}[T.{level}]")
            logger.debug(
                "Expanded %s: %s levels, reference %r", col, len(levels), levels[0]
            )
        elif pd.api.types.is_bool_dtype(series) or pd.api.types.is_numeric_dtype(series):
            values = series.to_numpy(dtype=np.float64)
            n_bad = int((~np.isfinite(values)).sum())
            if n_bad:
                raise InvalidConfiguration(
                    f"Predictor {col!r} has {n_bad} infinite values"
                )
            columns.append(values)
            names.append(col)
        else:
            raise InvalidConfiguration(
                f"Predictor {col!r} has unsupported dtype {series.dtype}; "
                "declare it categorical or convert it to numeric"
            )

    matrix = np.column_stack(columns) if columns else np.empty((n, 0))
    design = DesignMatrix(matrix, tuple(names), references)
    logger.info(
        "Design matrix built: %s x %s (%s categorical)",
        f"{design.n_obs:,}",
        design.n_params,
        len(references),
    )
    return design

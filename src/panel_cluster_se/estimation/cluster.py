"""OLS with cluster-robust (sandwich) covariance.

    beta  = (X'X)^-1 X'y
    M     = sum_g (X_g' e_g)(X_g' e_g)'
    V_CR  = c * (X'X)^-1 M (X'X)^-1,    c = G/(G-1) * (N-1)/(N-k)

Inference on V_CR uses a Student-t reference with G - 1 degrees of freedom.
The homoskedastic covariance ``sigma^2 (X'X)^-1`` is computed alongside so
both can be reported.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import numpy as np
import pandas as pd
from scipy.linalg import solve_triangular

from ..exceptions import InsufficientClusters, InvalidConfiguration, SingularDesign
from .design import DesignMatrix, build_design_matrix
from .results import FitResult

logger = logging.getLogger(__name__)

CORRECTIONS = ("cr1", "cluster", "none")
DF_POLICIES = ("clusters", "residual")


def cluster_scores(
    X: np.ndarray, residuals: np.ndarray, codes: np.ndarray, n_clusters: int
) -> np.ndarray:
    """Per-cluster score vectors ``X_g' e_g``, shape ``(G, k)``."""
    scores = np.zeros((n_clusters, X.shape[1]))
    np.add.at(scores, codes, X * residuals[:, None])
    return scores


def cluster_meat(
    X: np.ndarray, residuals: np.ndarray, codes: np.ndarray, n_clusters: int
) -> np.ndarray:
    """``sum_g (X_g' e_g)(X_g' e_g)'``, accumulated over clusters, not rows."""
    s = cluster_scores(X, residuals, codes, n_clusters)
    return s.T @ s


class ClusterRobustEstimator:
    """Fit OLS and compute cluster-robust standard errors.

    The estimator holds only its policy; ``fit`` does not mutate it, so one
    instance can be shared across threads or trials.

    Parameters
    ----------
    tol : float
        Relative tolerance for the rank check on the design matrix. A column
        whose QR pivot is below ``tol`` times the largest pivot is treated as
        collinear.
    correction : {"cr1", "cluster", "none"}
        Small-sample factor applied to the sandwich: ``"cr1"`` is
        ``G/(G-1) * (N-1)/(N-k)``, ``"cluster"`` is ``G/(G-1)``, ``"none"``
        is 1.
    df : {"clusters", "residual"}
        Degrees of freedom of the t reference for the cluster-robust
        p-values: ``G - 1`` or ``N - k``.

    Example
    -------
    >>> est = ClusterRobustEstimator()
    >>> res = est.fit(panel, "outcome", ["treatment_indicator", "unit_id"],
    ...               cluster_column="unit_id", categorical=["unit_id"])
    >>> res.summary().loc["treatment_indicator"]
    """

    def __init__(
        self,
        tol: float = 1e-10,
        correction: str = "cr1",
        df: str = "clusters",
    ) -> None:
        if not tol > 0:
            raise InvalidConfiguration(f"tol must be > 0, got {tol}")
        if correction not in CORRECTIONS:
            raise InvalidConfiguration(
                f"Unknown correction {correction!r}; expected one of {CORRECTIONS}"
            )
        if df not in DF_POLICIES:
            raise InvalidConfiguration(f"Unknown df policy {df!r}; expected one of {DF_POLICIES}")
        self.tol = tol
        self.correction = correction
        self.df = df

    def correction_factor(self, n_clusters: int, n_obs: int, n_params: int) -> float:
        """Small-sample factor multiplying the sandwich."""
        if n_clusters < 2:
            raise InsufficientClusters(
                f"Cluster-robust inference needs at least 2 clusters, got {n_clusters}"
            )
        if self.correction == "none":
            return 1.0
        factor = n_clusters / (n_clusters - 1)
        if self.correction == "cr1":
            factor *= (n_obs - 1) / (n_obs - n_params)
        return factor

    def fit(
        self,
        panel: pd.DataFrame,
        outcome_column: str,
        predictor_columns: Iterable[str],
        cluster_column: str,
        categorical: Iterable[str] | None = None,
    ) -> FitResult:
        """Regress ``outcome_column`` on an intercept plus ``predictor_columns``.

        Parameters
        ----------
        panel : pd.DataFrame
            Observations, one per row.
        outcome_column : str
            Dependent variable.
        predictor_columns : iterable of str
            Regressors. Categorical ones are reference coded, see
            ``build_design_matrix``.
        cluster_column : str
            Cluster key; rows sharing a value are treated as correlated.
        categorical : iterable of str, optional
            Predictors to expand into fixed-effect indicators.

        Returns
        -------
        FitResult

        Raises
        ------
        InvalidConfiguration
            Missing columns or missing values.
        InsufficientClusters
            Fewer than two distinct cluster values.
        SingularDesign
            Rank-deficient design, or no residual degrees of freedom.
        """
        for col in (outcome_column, cluster_column):
            if col not in panel.columns:
                raise InvalidConfiguration(
                    f"Missing column: {col!r}. Available: {sorted(panel.columns.tolist())}"
                )
            if panel[col].isna().any():
                raise InvalidConfiguration(
                    f"Column {col!r} has {int(panel[col].isna().sum())} missing values"
                )
        if not pd.api.types.is_numeric_dtype(panel[outcome_column]):
            raise InvalidConfiguration(
                f"Outcome {outcome_column!r} must be numeric, got {panel[outcome_column].dtype}"
            )
        y = panel[outcome_column].to_numpy(dtype=np.float64)
        n_bad = int((~np.isfinite(y)).sum())
        if n_bad:
            raise InvalidConfiguration(f"Outcome {outcome_column!r} has {n_bad} infinite values")

        codes, uniques = pd.factorize(panel[cluster_column], sort=True)
        n_clusters = len(uniques)
        if n_clusters < 2:
            raise InsufficientClusters(
                f"Cluster-robust inference needs at least 2 clusters; "
                f"{cluster_column!r} has {n_clusters}"
            )

        design = build_design_matrix(panel, predictor_columns, categorical=categorical)
        return self.fit_arrays(
            design,
            y,
            codes,
            n_clusters=n_clusters,
            outcome=outcome_column,
            cluster=cluster_column,
        )

    def fit_arrays(
        self,
        design: DesignMatrix,
        y: np.ndarray,
        codes: np.ndarray,
        n_clusters: int | None = None,
        outcome: str = "",
        cluster: str = "",
    ) -> FitResult:
        """Core computation on a prepared design and per-row cluster labels.

        ``codes`` holds one cluster label per row. Labels need not be
        contiguous; they are re-indexed to ``0..G-1`` here. When given,
        ``n_clusters`` must equal the number of distinct labels.
        """
        X = design.matrix
        n, k = X.shape
        y = np.asarray(y, dtype=np.float64)
        codes = np.asarray(codes)
        if y.shape != (n,) or codes.shape != (n,):
            raise InvalidConfiguration(
                f"Outcome {y.shape} and cluster codes {codes.shape} must both have {n} rows"
            )
        if not np.isfinite(y).all():
            raise InvalidConfiguration(
                f"Outcome has {int((~np.isfinite(y)).sum())} missing or infinite values"
            )
        codes, uniques = pd.factorize(codes, sort=True)
        if (codes < 0).any():
            raise InvalidConfiguration("Cluster codes contain missing values")
        if n_clusters is not None and n_clusters != len(uniques):
            raise InvalidConfiguration(
                f"n_clusters={n_clusters} but cluster codes hold {len(uniques)} distinct values"
            )
        n_clusters = len(uniques)
        if n_clusters < 2:
            raise InsufficientClusters(
                f"Cluster-robust inference needs at least 2 clusters, got {n_clusters}"
            )
        if n <= k:
            raise SingularDesign(
                f"No residual degrees of freedom: {n} observations for {k} coefficients"
            )

        q, r = design.qr(self.tol)
        coef = solve_triangular(r, q.T @ y)
        r_inv = solve_triangular(r, np.eye(k))
        bread = r_inv @ r_inv.T

        resid = y - X @ coef

        meat = cluster_meat(X, resid, codes, n_clusters)
        factor = self.correction_factor(n_clusters, n, k)
        cov_cluster = factor * bread @ meat @ bread
        cov_cluster = (cov_cluster + cov_cluster.T) / 2

        sigma2 = float(resid @ resid) / (n - k)
        cov_naive = sigma2 * bread

        df_inference = n_clusters - 1 if self.df == "clusters" else n - k

        logger.info(
            "Cluster-robust fit: %s observations, %s clusters, %s coefficients",
            f"{n:,}",
            f"{n_clusters:,}",
            k,
        )
        logger.debug("Correction factor %.6f, inference df %s", factor, df_inference)

        return FitResult.from_covariances(
            design.column_names,
            coef,
            resid,
            cov_cluster,
            cov_naive,
            n_clusters=n_clusters,
            df_inference=df_inference,
            correction_factor=factor,
            outcome=outcome,
            cluster=cluster,
        )


def fit(
    panel: pd.DataFrame,
    outcome_column: str,
    predictor_columns: Iterable[str],
    cluster_column: str,
    categorical: Iterable[str] | None = None,
    **policy,
) -> FitResult:
    """Functional form of ``ClusterRobustEstimator(**policy).fit(...)``."""
    return ClusterRobustEstimator(**policy).fit(
        panel,
        outcome_column,
        predictor_columns,
        cluster_column,
        categorical=categorical,
    )

"""Immutable result of a cluster-robust OLS fit."""

from __future__ import annotations

from dataclasses import dataclass, fields

import numpy as np
import pandas as pd
from scipy import stats


def _inference(
    coef: np.ndarray, cov: np.ndarray, df: int
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Standard errors, t-statistics and two-sided p-values from a covariance."""
    se = np.sqrt(np.clip(np.diag(cov), 0.0, None))
    with np.errstate(divide="ignore", invalid="ignore"):
        t = coef / se
    p = 2 * stats.t.sf(np.abs(t), df)
    return se, t, p


@dataclass(frozen=True, eq=False)
class FitResult:
    """Coefficients with both cluster-robust and homoskedastic inference.

    Cluster-robust t-tests use ``df_inference`` degrees of freedom (G - 1 by
    default); homoskedastic ones use ``df_resid`` (N - k). All arrays are
    read-only.

    Attributes
    ----------
    names : tuple[str, ...]
        Coefficient names, in design-matrix column order.
    coef : np.ndarray
        Point estimates.
    residuals : np.ndarray
        ``y - X @ coef``.
    cov_cluster, cov_naive : np.ndarray
        Cluster-robust sandwich and homoskedastic ``sigma^2 (X'X)^-1``
        covariance matrices.
    se, tvalues, pvalues : np.ndarray
        Cluster-robust inference.
    se_naive, tvalues_naive, pvalues_naive : np.ndarray
        Homoskedastic inference.
    """

    names: tuple[str, ...]
    coef: np.ndarray
    residuals: np.ndarray
    cov_cluster: np.ndarray
    cov_naive: np.ndarray
    se: np.ndarray
    tvalues: np.ndarray
    pvalues: np.ndarray
    se_naive: np.ndarray
    tvalues_naive: np.ndarray
    pvalues_naive: np.ndarray
    n_obs: int
    n_clusters: int
    df_resid: int
    df_inference: int
    correction_factor: float
    outcome: str = ""
    cluster: str = ""

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, np.ndarray):
                value.flags.writeable = False

    @classmethod
    def from_covariances(
        cls,
        names: tuple[str, ...],
        coef: np.ndarray,
        residuals: np.ndarray,
        cov_cluster: np.ndarray,
        cov_naive: np.ndarray,
        *,
        n_clusters: int,
        df_inference: int,
        correction_factor: float,
        outcome: str = "",
        cluster: str = "",
    ) -> FitResult:
        """Derive standard errors, t-statistics and p-values and freeze them."""
        n_obs = len(residuals)
        df_resid = n_obs - len(coef)
        se, t, p = _inference(coef, cov_cluster, df_inference)
        se_n, t_n, p_n = _inference(coef, cov_naive, df_resid)
        return cls(
            names=tuple(names),
            coef=np.array(coef, dtype=np.float64),
            residuals=np.array(residuals, dtype=np.float64),
            cov_cluster=np.array(cov_cluster, dtype=np.float64),
            cov_naive=np.array(cov_naive, dtype=np.float64),
            se=se,
            tvalues=t,
            pvalues=p,
            se_naive=se_n,
            tvalues_naive=t_n,
            pvalues_naive=p_n,
            n_obs=n_obs,
            n_clusters=n_clusters,
            df_resid=df_resid,
            df_inference=df_inference,
            correction_factor=float(correction_factor),
            outcome=outcome,
            cluster=cluster,
        )

    @property
    def n_params(self) -> int:
        return len(self.coef)

    @property
    def params(self) -> pd.Series:
        return pd.Series(self.coef, index=list(self.names), name="coef")

    @property
    def bse(self) -> pd.Series:
        return pd.Series(self.se, index=list(self.names), name="se")

    @property
    def bse_naive(self) -> pd.Series:
        return pd.Series(self.se_naive, index=list(self.names), name="se_naive")

    def index(self, name: str) -> int:
        try:
            return self.names.index(name)
        except ValueError:
            raise KeyError(f"No coefficient named {name!r}; have {list(self.names)}") from None

    def conf_int(self, alpha: float = 0.05, robust: bool = True) -> pd.DataFrame:
        """Two-sided ``1 - alpha`` confidence intervals.

        Parameters
        ----------
        alpha : float
            Significance level, in (0, 1).
        robust : bool
            Use the cluster-robust standard errors and G - 1 df; otherwise the
            homoskedastic ones with N - k df.
        """
        if not 0 < alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {alpha}")
        se, df = (self.se, self.df_inference) if robust else (self.se_naive, self.df_resid)
        q = stats.t.ppf(1 - alpha / 2, df)
        return pd.DataFrame(
            {"lower": self.coef - q * se, "upper": self.coef + q * se},
            index=list(self.names),
        )

    def summary(self) -> pd.DataFrame:
        """Coefficient table with both inference variants side by side.

        Returns
        -------
        pd.DataFrame
            Indexed by coefficient name with columns: coef, se_cluster,
            t_cluster, p_cluster, se_naive, t_naive, p_naive.
        """
        return pd.DataFrame(
            {
                "coef": self.coef,
                "se_cluster": self.se,
                "t_cluster": self.tvalues,
                "p_cluster": self.pvalues,
                "se_naive": self.se_naive,
                "t_naive": self.tvalues_naive,
                "p_naive": self.pvalues_naive,
            },
            index=list(self.names),
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(outcome={self.outcome!r}, cluster={self.cluster!r}, "
            f"n_obs={self.n_obs}, n_clusters={self.n_clusters}, k={self.n_params})"
        )

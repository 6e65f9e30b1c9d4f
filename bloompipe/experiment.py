"""
bloompipe.experiment
====================
Experiment runner: orchestrates one batch run from the observation table
to fitted models, metrics and diagnostics, for one or several classifier
families on the same split, transform state and folds.

The runner iterates:

.. code-block:: text

    build features (lags, lead-shifted label)
    split chronologically → train / test
    fit transform chain on train → apply to train and test
    stratified folds on train
    for family in families:
        [tune on folds] → cross-validate → refit on all train
        evaluate on test → diagnostics → log + save artefacts

Any stage failure propagates to the caller; nothing is retried.

Public API
----------
ExperimentRunner(config) – instantiate once, call .run(df)
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .checks import run_all_checks
from .config import PipelineConfig, ModelFamily
from .diagnostics import DiagnosticsData, build_diagnostics
from .evaluation import EvaluationResult, evaluate
from .export import save_run_artifacts, update_summary_table
from .features import build_features
from .ingestion import read_observations
from .models.base import FittedModel
from .preprocessing import PreprocessingState, apply, build_pipeline, split_xy
from .search import SearchResult, tune_hyperparameters
from .splitting import check_no_leakage, make_folds, split_train_test
from .training import CVResult, cross_validate, fit_final


@dataclass
class PreparedData:
    """Everything shared by all families within a run."""

    raw: pd.DataFrame
    features: pd.DataFrame
    feature_meta: Dict[str, Any]
    train: pd.DataFrame
    test: pd.DataFrame
    state: PreprocessingState
    train_pre: pd.DataFrame
    test_pre: pd.DataFrame
    folds: list


@dataclass
class FamilyResult:
    family: ModelFamily
    cv: CVResult
    model: FittedModel
    evaluation: EvaluationResult
    diagnostics: DiagnosticsData
    search: Optional[SearchResult] = None
    elapsed_s: float = 0.0

    def summary_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"family": self.family.value}
        row.update({f"cv_{k}": v for k, v in self.cv.mean_metrics.items()})
        row.update({f"test_{k}": v for k, v in self.evaluation.metrics.items()})
        row["params"] = json.dumps(self.model.params, default=str)
        row["tuned"] = self.search is not None
        row["elapsed_s"] = round(self.elapsed_s, 2)
        return row


class ExperimentRunner:
    """
    End-to-end experiment orchestrator.

    Parameters
    ----------
    config : PipelineConfig
        Master configuration.
    skip_checks : bool
        If True, skip the leakage/quality check battery (faster).
    save_artifacts : bool
        Write per-family artefacts and the summary CSV under
        ``config.output_dir``.
    """

    def __init__(
        self,
        config: PipelineConfig,
        skip_checks: bool = False,
        save_artifacts: bool = True,
    ):
        self.cfg = config
        self.skip_checks = skip_checks
        self.save_artifacts = save_artifacts
        self.results: Dict[ModelFamily, FamilyResult] = {}
        self.prepared: Optional[PreparedData] = None

    # ------------------------------------------------------------------ #
    #  Main entry point                                                    #
    # ------------------------------------------------------------------ #

    def run(self, df: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """
        Execute the run for every configured family.

        Parameters
        ----------
        df : pd.DataFrame, optional
            Observation table; read from ``config.data_path`` if omitted.

        Returns
        -------
        pd.DataFrame
            Summary table with one row per family.
        """
        t0 = time.time()
        if df is None:
            df = read_observations(self.cfg.data_path, self.cfg.lag_config.lags)

        if self.save_artifacts:
            self.cfg.save(Path(self.cfg.output_dir) / "pipeline_config.json")

        prepared = self.prepare(df)

        rows: List[Dict[str, Any]] = []
        for family in self.cfg.resolved_families():
            print(f"\n{'='*60}")
            print(f"  Family: {family.value}")
            print(f"{'='*60}")
            result = self.run_family(prepared, family)
            self.results[family] = result
            row = result.summary_row()
            rows.append(row)
            if self.save_artifacts:
                self._save(prepared, result, row)

        print(f"\n✓ Run completed in {time.time() - t0:.1f}s")
        return pd.DataFrame(rows)

    # ------------------------------------------------------------------ #
    #  Shared preparation                                                  #
    # ------------------------------------------------------------------ #

    def prepare(self, df: pd.DataFrame) -> PreparedData:
        """Features → split → transform state → folds."""
        cfg = self.cfg

        features, meta = build_features(df, cfg.lag_config, cfg.label_config)
        print(f"  Features built: {meta['n_output']:,} rows "
              f"(dropped {meta['dropped_head']} head / {meta['dropped_tail']} tail)")

        train, test = split_train_test(features, cfg.split_config)
        if not self.skip_checks:
            check_no_leakage(train, test)

        pipeline = build_pipeline(cfg.preprocess_config, cfg.random_seed)
        state = pipeline.fit(train)
        train_pre = apply(state, train, training=False)
        test_pre = apply(state, test, training=False)
        print(f"  Preprocessed — train: {len(train_pre):,}  test: {len(test_pre):,}  "
              f"features: {len(state.feature_names)}")

        if not self.skip_checks:
            run_all_checks(
                df, features, cfg.lag_config.lags, train, test,
                list(state.feature_names), train_pre, state.label_col,
            )

        folds = make_folds(
            train_pre[state.label_col], cfg.cv_config.n_folds, cfg.random_seed
        )

        self.prepared = PreparedData(
            raw=df,
            features=features,
            feature_meta=meta,
            train=train,
            test=test,
            state=state,
            train_pre=train_pre,
            test_pre=test_pre,
            folds=folds,
        )
        return self.prepared

    # ------------------------------------------------------------------ #
    #  One family                                                          #
    # ------------------------------------------------------------------ #

    def run_family(self, prepared: PreparedData, family: ModelFamily) -> FamilyResult:
        """Tune / cross-validate, refit, evaluate and diagnose one family."""
        cfg = self.cfg
        t0 = time.time()
        seed = cfg.random_seed

        params = dict(cfg.model_config.params) if family == cfg.model_config.family else {}

        search = None
        if cfg.search_config.enabled:
            print(f"    → searching ({cfg.search_config.method.value})...")
            search = tune_hyperparameters(
                family, prepared.train_pre, prepared.state, prepared.folds,
                cfg.search_config, cfg.cv_config, seed, base_params=params,
            )
            params = search.best_params
            cv = search.best_cv
        else:
            cv = cross_validate(
                family, params, prepared.train_pre, prepared.state,
                prepared.folds, seed, n_jobs=cfg.cv_config.n_jobs,
                threshold=cfg.cv_config.decision_threshold,
            )

        metric = cfg.cv_config.primary_metric
        print(f"    CV {metric}={cv.score(metric):.4f}  params={cv.params}")

        model = fit_final(family, params, prepared.train_pre, prepared.state, seed,
                          threshold=cfg.cv_config.decision_threshold, cv_result=cv)

        X_test, y_test = split_xy(prepared.state, prepared.test_pre)
        ev = evaluate(model, X_test, y_test)
        print("    Test  " + "  ".join(f"{k}={v:.3f}" for k, v in ev.metrics.items()))

        diag = build_diagnostics(
            ev.predictions,
            prepared.test,
            count_threshold=cfg.label_config.threshold,
            decision_threshold=model.threshold,
        )

        return FamilyResult(
            family=family,
            cv=cv,
            model=model,
            evaluation=ev,
            diagnostics=diag,
            search=search,
            elapsed_s=time.time() - t0,
        )

    # ------------------------------------------------------------------ #
    #  Persistence                                                         #
    # ------------------------------------------------------------------ #

    def _save(self, prepared: PreparedData, result: FamilyResult, row: Dict[str, Any]) -> None:
        out = Path(self.cfg.output_dir)
        save_run_artifacts(
            out / result.family.value,
            config=self.cfg,
            family=result.family.value,
            params=result.model.params,
            metrics={
                "cv": result.cv.mean_metrics,
                "cv_folds": result.cv.fold_metrics,
                "test": result.evaluation.metrics,
            },
            predictions=result.evaluation.predictions,
            confusion={
                "test": result.evaluation.confusion,
                "cv_sum": result.cv.confusion_sum,
                "cv_mean": result.cv.confusion_mean,
            },
            model_bundle={"model": result.model, "state": prepared.state},
            search_history=result.search.history if result.search else None,
            files_used=[self.cfg.data_path] if self.cfg.data_path else None,
        )
        update_summary_table(out, row)

"""
bloompipe — Binary prediction of harmful algal bloom abundance.

Flow:
  observation table → lag/lead features + lead-shifted class label
  → chronological split → train-fitted transform chain
  → stratified CV / hyperparameter search → final refit
  → test evaluation → diagnostics → export + logging

Modules
-------
config        : Configuration dataclasses, enums and column constants
errors        : Pipeline error taxonomy and UnseenCategoryWarning
ingestion     : read_observations, validate_observations
targets       : derive_class_label, add_target_columns
features      : build_features (per-covariate lags/leads, week of year)
splitting     : split_train_test, make_folds, leakage guard
preprocessing : Transform steps, PreprocessingPipeline, apply / resample
models/       : Model registry (MLP, random forest, bagged trees)
training      : cross_validate, fit_final
search        : tune_hyperparameters (Bayesian / grid)
evaluation    : Metrics, confusion matrices, evaluate
diagnostics   : Plot-ready scatter / time series / response-curve tables
checks        : Lag-alignment assertions and data-quality checks
experiment    : ExperimentRunner — multi-family run with logging
export        : Parquet/CSV export, metadata, model bundles
"""

__version__ = "0.1.0"

"""
bloompipe.models.mlp
====================
PyTorch feed-forward classifier for tabular bloom predictors.

Architecture
------------
``input → Linear(hidden_units) → activation → Dropout → Linear(1)``

trained with binary cross-entropy on logits and Adam.  The output logit
is the log-odds of the ``high`` class.

Reproducibility
---------------
Weight initialisation and mini-batch shuffling draw from a forked torch
RNG seeded with ``random_state``, so fitting never touches (or depends
on) the global torch seed.

Divergence
----------
A non-finite epoch loss aborts the fit with `TrainingDivergedError`
instead of returning a degenerate network.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import torch
import torch.nn as nn
from torch.utils.data import DataLoader, TensorDataset

from ..config import ModelFamily
from ..errors import TrainingDivergedError
from .base import BloomClassifier


ACTIVATIONS = {
    "relu": nn.ReLU,
    "tanh": nn.Tanh,
    "sigmoid": nn.Sigmoid,
    "elu": nn.ELU,
    "linear": nn.Identity,
}


# ======================================================================== #
#  PyTorch module                                                           #
# ======================================================================== #

class _MLPNet(nn.Module):
    """Single hidden layer → logit."""

    def __init__(self, input_size: int, hidden_units: int, dropout: float, activation: str):
        super().__init__()
        self.body = nn.Sequential(
            nn.Linear(input_size, hidden_units),
            ACTIVATIONS[activation](),
            nn.Dropout(dropout),
        )
        self.head = nn.Linear(hidden_units, 1)

    def forward(self, x):
        # x: (B, F)
        return self.head(self.body(x)).squeeze(-1)


# ======================================================================== #
#  Family wrapper                                                           #
# ======================================================================== #

class MLPFamily(BloomClassifier):
    """Feed-forward network with the common ``fit`` / ``predict_proba`` API."""

    family = ModelFamily.MLP

    def __init__(
        self,
        hidden_units: int = 5,
        epochs: int = 100,
        dropout: float = 0.1,
        learning_rate: float = 0.01,
        activation: str = "relu",
        batch_size: int = 64,
        random_state: int = 42,
        device: Optional[str] = None,
    ):
        if activation not in ACTIVATIONS:
            raise ValueError(
                f"Unknown activation '{activation}'. Choose from {list(ACTIVATIONS)}"
            )
        self.hidden_units = hidden_units
        self.epochs = epochs
        self.dropout = dropout
        self.learning_rate = learning_rate
        self.activation = activation
        self.batch_size = batch_size
        self.random_state = random_state
        self.device = device or "cpu"
        self.model_ = None
        self.loss_history_ = []

    def get_params(self):
        return {
            "hidden_units": self.hidden_units,
            "epochs": self.epochs,
            "dropout": self.dropout,
            "learning_rate": self.learning_rate,
            "activation": self.activation,
            "batch_size": self.batch_size,
        }

    def _to_tensor(self, X):
        return torch.tensor(np.asarray(X, dtype=np.float32), device=self.device)

    def fit(self, X, y):
        X_t = self._to_tensor(X)
        y_t = torch.tensor(self._encode(y).astype(np.float32), device=self.device)

        with torch.random.fork_rng(devices=[]):
            torch.manual_seed(self.random_state)
            gen = torch.Generator().manual_seed(self.random_state)

            self.model_ = _MLPNet(
                X_t.shape[1], int(self.hidden_units), float(self.dropout), self.activation
            ).to(self.device)
            opt = torch.optim.Adam(self.model_.parameters(), lr=float(self.learning_rate))
            criterion = nn.BCEWithLogitsLoss()

            ds = TensorDataset(X_t, y_t)
            loader = DataLoader(
                ds, batch_size=int(self.batch_size), shuffle=True, generator=gen
            )

            self.loss_history_ = []
            for epoch in range(int(self.epochs)):
                self.model_.train()
                epoch_loss = 0.0
                for xb, yb in loader:
                    opt.zero_grad()
                    loss = criterion(self.model_(xb), yb)
                    loss.backward()
                    opt.step()
                    epoch_loss += loss.item() * xb.size(0)
                epoch_loss /= len(ds)

                if not np.isfinite(epoch_loss):
                    raise TrainingDivergedError(
                        "Non-finite training loss.",
                        family=self.family.value,
                        context={"epoch": epoch, "params": self.get_params()},
                    )
                self.loss_history_.append(epoch_loss)

        self.model_.eval()
        return self

    def predict_proba(self, X):
        X_t = self._to_tensor(X)
        self.model_.eval()
        with torch.no_grad():
            proba = torch.sigmoid(self.model_(X_t)).cpu().numpy()
        return self._check_proba(proba)

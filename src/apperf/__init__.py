"""apperf — adversarial prediction for performance metrics.

Turns generic, non-decomposable binary classification metrics (F1,
precision at a recall level, MCC, ...) into differentiable training
objectives by solving an adversarial prediction game per batch.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("apperf")
except PackageNotFoundError:
    # Fallback for source-only usage before installation.
    __version__ = "0.1.0"
__author__ = "apperf contributors"
__license__ = "MIT"

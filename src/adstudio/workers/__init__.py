"""Background workers."""

from adstudio.workers.reconciler import SweepResult, reconcile_sweep, run_reconciler

__all__ = ["SweepResult", "reconcile_sweep", "run_reconciler"]

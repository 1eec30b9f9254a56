"""Background worker hosting on top of the event bus."""
from .runner import WorkerSpec, register_worker, run_worker

__all__ = ["WorkerSpec", "register_worker", "run_worker"]

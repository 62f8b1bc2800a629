"""
Services layer for the lunch order automation.

This module contains the business logic services:
- steps / seamless_steps / pipeline: the per-batch checkout steps of each website
  and the pipeline running them
- retry: RetryController, bounded attempts per batch
- runner: AutomationRunner, one run over all of the day's batches
- stores: order, user, menu and stats collaborators backed by JSON files
- automation_service: background run threads and their result store

Thread Model:
    Main Thread (Flask or CLI)
    └── AutomationService threads (one per run, each with its OWN browser)

Batches within a run are processed sequentially on the run's thread.
"""

from .pipeline import StepPipeline, DEFAULT_STEPS, SEAMLESS_STEPS, steps_for
from .retry import RetryController
from .runner import AutomationRunner, ResultAggregator, run_automation
from .automation_service import AutomationService, RunResultStore

__all__ = [
    "StepPipeline",
    "DEFAULT_STEPS",
    "SEAMLESS_STEPS",
    "steps_for",
    "RetryController",
    "AutomationRunner",
    "ResultAggregator",
    "run_automation",
    "AutomationService",
    "RunResultStore",
]

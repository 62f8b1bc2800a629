"""
Data models for the lunch order automation.

This module contains immutable dataclasses for:
- OrderBatch / ParticipantOrder / ItemSelection: the day's orders per restaurant
- User: a registered user (display name and phone)
- StepOutcome variants: Continue, RetryableFailure, FatalFailure
- PipelineResult: per-attempt record of step result slices
- BatchResult / RunResult: terminal outcomes handed to notification

Order and result models are frozen so a run thread can own them without copies.
"""

from .order import ItemSelection, ParticipantOrder, OrderBatch, User
from .outcome import (
    Continue,
    RetryableFailure,
    FatalFailure,
    StepOutcome,
    OutcomeKind,
    FilledItems,
    Submission,
    PipelineResult,
    SliceAlreadyWrittenError,
)
from .batch_result import BatchResult, BatchStatus, RunResult

__all__ = [
    # Order models
    "ItemSelection",
    "ParticipantOrder",
    "OrderBatch",
    "User",
    # Step outcomes
    "Continue",
    "RetryableFailure",
    "FatalFailure",
    "StepOutcome",
    "OutcomeKind",
    "FilledItems",
    "Submission",
    "PipelineResult",
    "SliceAlreadyWrittenError",
    # Results
    "BatchResult",
    "BatchStatus",
    "RunResult",
]

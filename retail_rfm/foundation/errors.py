"""Error taxonomy for the RFM segmentation pipeline.

Every failure is fatal to a run. Errors remember which pipeline stage and
which entity (customer or invoice) triggered them so the caller can report
the offending record without parsing messages.
"""

from __future__ import annotations


class RFMPipelineError(ValueError):
    """Base class for all pipeline failures.

    Attributes
    ----------
    stage:
        Name of the pipeline stage that failed. Filled in by the pipeline
        when the raising helper was called outside of a run.
    entity_id:
        customer_id or invoice_id of the offending record, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        entity_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.entity_id = entity_id

    def __str__(self) -> str:
        context = []
        if self.stage is not None:
            context.append(f"stage={self.stage}")
        if self.entity_id is not None:
            context.append(f"entity={self.entity_id}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class DataIntegrityError(RFMPipelineError):
    """Malformed or missing quantity, price, date or identifier on a sales line."""


class UndefinedScoreError(RFMPipelineError):
    """A metric value falls outside every quantile band (e.g. NaN or missing)."""


class IncompleteRuleTableError(RFMPipelineError):
    """The segment rule table does not map every (r_score, fm_score) pair exactly once."""

from contactpro.forms.controller import FormController, SubmitOutcome, SubmitStatus
from contactpro.forms.sync import AdvisorySync, AdvisorySyncClient, build_advisory_sync
from contactpro.forms.validation import default_draft, validate_draft

__all__ = [
    "AdvisorySync",
    "AdvisorySyncClient",
    "FormController",
    "SubmitOutcome",
    "SubmitStatus",
    "build_advisory_sync",
    "default_draft",
    "validate_draft",
]

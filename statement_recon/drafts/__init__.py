"""Draft editing package."""

from statement_recon.drafts.draft import Draft
from statement_recon.drafts.in_flight import AlreadyInFlightError, InFlightIds

__all__ = ["AlreadyInFlightError", "Draft", "InFlightIds"]

"""
Roster ingestion for bulk admission offers.

Reads .csv / .xlsx rosters into OfferImportRow values.  File I/O only;
persistence happens in LifecycleService.import_offers.
"""

from admissions_ingestion.roster import adapter_for, read_offer_roster

__all__ = ["adapter_for", "read_offer_roster"]

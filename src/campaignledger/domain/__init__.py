"""Domain layer for campaignledger.

Services are imported from their own modules (``campaignledger.domain.ledger``
and so on); this package does not re-export them so the store layer can
import entities and errors without pulling in the services.
"""

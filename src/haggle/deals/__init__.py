"""Human confirmation of negotiated deals."""

from haggle.deals.service import confirm_deal, decline_deal, list_pending_deals

__all__ = ["confirm_deal", "decline_deal", "list_pending_deals"]

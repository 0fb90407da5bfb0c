"""Clients RPC des canaux de vente (caisse/paiement Square, marketplace eBay)."""

from .base import ChannelClient, HttpChannelClient
from .ebay import EbayClient
from .square import SquareClient

__all__ = ["ChannelClient", "EbayClient", "HttpChannelClient", "SquareClient"]

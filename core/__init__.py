"""Domaine de réconciliation des ventes multi-canal (stock, ledger, promotions)."""

"""Beatcoin wallet collaborator."""

from cosmicbeats.wallet.models import WalletAccount, WalletTransaction
from cosmicbeats.wallet.service import LedgerWallet, Wallet, WalletError

__all__ = ["LedgerWallet", "Wallet", "WalletAccount", "WalletError", "WalletTransaction"]

"""
Addresses, key encodings (WIF, NEP-2) and accounts.

Import the submodules directly, e.g. ``from neoviper.wallet.account import Account``.
"""

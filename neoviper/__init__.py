import logging

core_logger = logging.getLogger("neoviper.core")
api_logger = logging.getLogger("neoviper.api")
wallet_logger = logging.getLogger("neoviper.wallet")

__version__ = "0.1.0"

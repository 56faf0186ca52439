from .nonce import Nonce

__all__ = ["Nonce"]

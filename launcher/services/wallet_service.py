"""
Master wallet custody: decodes the issuer secret and hands out the keypair
"""

import json
import logging
from typing import Optional

import base58
from solders.keypair import Keypair

from launcher.config import LauncherConfig
from launcher.errors import CredentialDecodeError

SECRET_KEY_LENGTH = 64


class WalletService:
    """Holds the master keypair for the life of the process"""

    def __init__(self, master_wallet_secret: str):
        self._secret = master_wallet_secret
        self._keypair: Optional[Keypair] = None
        self.logger = logging.getLogger('token_launcher')

    @classmethod
    def from_config(cls, config: LauncherConfig) -> 'WalletService':
        return cls(config.master_wallet_secret)

    def __repr__(self) -> str:
        return "WalletService(<secret hidden>)"

    def get_master_keypair(self) -> Keypair:
        """Decode the master wallet secret (cached after the first call)"""
        if self._keypair is None:
            self._keypair = self.decode_secret(self._secret)
            self.logger.info(f"Master wallet loaded: {self._keypair.pubkey()}")
        return self._keypair

    def decode_secret(self, secret: str) -> Keypair:
        """Accept either a JSON byte array ([84,107,...]) or a base58 string"""
        if not secret or not secret.strip():
            raise CredentialDecodeError("Master wallet secret is not configured")

        secret = secret.strip()
        if secret.startswith('[') and secret.endswith(']'):
            self.logger.debug("Detected JSON array secret format")
            secret_bytes = self._decode_json_array(secret)
        else:
            self.logger.debug("Detected base58 secret format")
            try:
                secret_bytes = base58.b58decode(secret)
            except ValueError:
                raise CredentialDecodeError("Master wallet secret is not valid base58")

        if len(secret_bytes) != SECRET_KEY_LENGTH:
            raise CredentialDecodeError(
                f"Master wallet secret must be {SECRET_KEY_LENGTH} bytes, got {len(secret_bytes)}"
            )

        try:
            return Keypair.from_bytes(secret_bytes)
        except ValueError:
            # Public half does not match the secret half
            raise CredentialDecodeError("Master wallet secret is not a valid ed25519 keypair")

    @staticmethod
    def _decode_json_array(secret: str) -> bytes:
        try:
            values = json.loads(secret)
        except json.JSONDecodeError:
            raise CredentialDecodeError("Master wallet secret is not a valid JSON array")

        if not isinstance(values, list) or not all(
            isinstance(v, int) and not isinstance(v, bool) and 0 <= v <= 255 for v in values
        ):
            raise CredentialDecodeError("Master wallet secret array must contain only byte values")
        return bytes(values)

"""
Launch request, session and result models
"""

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from launcher.errors import ValidationError


class SigningMode(Enum):
    """Who signs the token-creation transaction"""
    ISSUER_SIGNS = "issuer"  # Single-shot: master wallet signs and pays for everything
    USER_SIGNS = "user"      # Two-phase: recipient pays for and co-signs creation


def _pick(data: Dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if value not in (None, ''):
            return value
    return None


@dataclass(frozen=True)
class LaunchRequest:
    """User intent for a new token. Never mutated after it is accepted."""
    recipient: str  # Wallet that receives the whole supply
    name: str
    symbol: str
    description: Optional[str] = None
    image_url: Optional[str] = None  # Already-external image (URL, ipfs:// or data:image/)
    image_bytes: Optional[bytes] = field(default=None, repr=False)
    image_name: Optional[str] = None
    website: Optional[str] = None
    twitter: Optional[str] = None
    telegram: Optional[str] = None
    discord: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> 'LaunchRequest':
        """Build from an HTTP request body (camelCase or snake_case keys)"""
        image_bytes = None
        image_upload = _pick(data, 'imageUpload', 'image_upload')
        if image_upload:
            # Accept raw base64 as well as data:image/...;base64, payloads
            if image_upload.startswith('data:') and ',' in image_upload:
                image_upload = image_upload.split(',', 1)[1]
            try:
                image_bytes = base64.b64decode(image_upload, validate=True)
            except (binascii.Error, ValueError):
                raise ValidationError("Image upload is not valid base64")

        return cls(
            recipient=(_pick(data, 'userWallet', 'recipient', 'user_wallet') or '').strip(),
            name=_pick(data, 'name') or '',
            symbol=_pick(data, 'symbol') or '',
            description=_pick(data, 'description'),
            image_url=_pick(data, 'imageUrl', 'image_url'),
            image_bytes=image_bytes,
            image_name=_pick(data, 'imageName', 'image_name'),
            website=_pick(data, 'website'),
            twitter=_pick(data, 'twitter'),
            telegram=_pick(data, 'telegram'),
            discord=_pick(data, 'discord'),
        )


@dataclass(frozen=True)
class MintIdentity:
    """Fresh keypair that becomes the token's mint address"""
    keypair: Keypair = field(repr=False)

    @classmethod
    def generate(cls) -> 'MintIdentity':
        return cls(keypair=Keypair())

    @property
    def address(self) -> Pubkey:
        return self.keypair.pubkey()

    def __repr__(self) -> str:
        return f"MintIdentity(address={self.address})"


@dataclass(frozen=True)
class MetadataRecord:
    """Off-chain token document and where it was published"""
    name: str
    symbol: str
    description: str
    image: str = ''
    external_url: str = ''
    attributes: List[Dict] = field(default_factory=list)
    uri: str = ''
    is_inline: bool = False  # True when the URI is the data: fallback

    def to_json(self) -> Dict:
        """Document as pinned to IPFS"""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "description": self.description,
            "image": self.image,
            "external_url": self.external_url,
            "attributes": list(self.attributes),
        }


@dataclass
class LaunchSession:
    """Prepared-but-unsigned creation transaction waiting for the user's signature"""
    mint: MintIdentity
    unsigned_transaction: bytes = field(repr=False)  # Serialized, partially signed by mint + issuer
    request: LaunchRequest
    metadata: MetadataRecord
    created_at: float


@dataclass(frozen=True)
class PrepareResponse:
    """Returned by prepare; the client signs unsigned_transaction and calls execute"""
    session_id: str
    mint_address: str
    unsigned_transaction: str  # base64
    metadata_uri: str
    expires_in: float

    def to_dict(self) -> Dict:
        return {
            "success": True,
            "sessionId": self.session_id,
            "mintAddress": self.mint_address,
            "transaction": self.unsigned_transaction,
            "metadataUri": self.metadata_uri,
            "expiresIn": self.expires_in,
        }


@dataclass(frozen=True)
class ExecuteRequest:
    """Second half of the two-phase launch"""
    session_id: str
    signed_transaction: str  # base64

    @classmethod
    def from_dict(cls, data: Dict) -> 'ExecuteRequest':
        session_id = _pick(data, 'sessionId', 'session_id')
        signed = _pick(data, 'signedTransaction', 'signed_transaction')
        if not session_id:
            raise ValidationError("Session id is required", step="load_session")
        if not signed:
            raise ValidationError("Signed transaction is required", step="verify_signed_transaction")
        return cls(session_id=session_id, signed_transaction=signed)


@dataclass(frozen=True)
class LaunchResult:
    """Terminal success record for a launch"""
    mint_address: str
    metadata_address: str
    user_token_account: str
    total_supply: int
    user_balance: int  # All tokens go to the user
    fee: str  # SOL, charged to the master wallet
    fee_lamports: int
    transaction_signature: str  # Token creation transaction
    explorer_url: str
    signing_mode: SigningMode = SigningMode.ISSUER_SIGNS

    def to_dict(self) -> Dict:
        return {
            "success": True,
            "mintAddress": self.mint_address,
            "metadataAddress": self.metadata_address,
            "userTokenAccount": self.user_token_account,
            "totalSupply": str(self.total_supply),
            "userBalance": str(self.user_balance),
            "transactionSignature": self.transaction_signature,
            "explorerUrl": self.explorer_url,
            "fee": self.fee,
        }

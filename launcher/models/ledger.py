"""
Typed views of ledger accounts read by the launcher
"""

import struct
from dataclasses import dataclass, field
from typing import Dict, Optional

from solders.pubkey import Pubkey

# SPL Token mint layout:
#   u32 option + 32 mint authority | u64 supply | u8 decimals | u8 initialized | u32 option + 32 freeze authority
MINT_ACCOUNT_SIZE = 82


@dataclass(frozen=True)
class AccountInfo:
    """Raw account as returned by the RPC node"""
    address: Pubkey
    lamports: int
    owner: Pubkey
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class MintInfo:
    """Decoded SPL Token mint account"""
    address: Pubkey
    supply: int
    decimals: int
    is_initialized: bool
    mint_authority: Optional[Pubkey]
    freeze_authority: Optional[Pubkey]

    @classmethod
    def from_account(cls, account: AccountInfo) -> 'MintInfo':
        data = account.data
        if len(data) < MINT_ACCOUNT_SIZE:
            raise ValueError(f"Account {account.address} is not a mint ({len(data)} bytes)")

        mint_auth_tag = struct.unpack_from('<I', data, 0)[0]
        supply = struct.unpack_from('<Q', data, 36)[0]
        decimals = data[44]
        is_initialized = data[45] == 1
        freeze_auth_tag = struct.unpack_from('<I', data, 46)[0]

        return cls(
            address=account.address,
            supply=supply,
            decimals=decimals,
            is_initialized=is_initialized,
            mint_authority=Pubkey.from_bytes(data[4:36]) if mint_auth_tag else None,
            freeze_authority=Pubkey.from_bytes(data[50:82]) if freeze_auth_tag else None,
        )


@dataclass(frozen=True)
class OnChainMetadata:
    """Decoded Metaplex metadata account (only the fields we report)"""
    update_authority: Pubkey
    mint: Pubkey
    name: str
    symbol: str
    uri: str
    is_mutable: bool


@dataclass(frozen=True)
class TokenStatus:
    """Read-only projection of a launched token"""
    mint_address: str
    metadata_address: str
    decimals: int
    total_supply: int
    name: Optional[str] = None
    symbol: Optional[str] = None
    uri: Optional[str] = None
    mint_authority: Optional[str] = None
    freeze_authority: Optional[str] = None
    metadata_mutable: Optional[bool] = None
    launch_timestamp: Optional[float] = None

    @property
    def authorities_revoked(self) -> bool:
        return self.mint_authority is None and self.freeze_authority is None

    def to_dict(self) -> Dict:
        return {
            "mintAddress": self.mint_address,
            "metadataAddress": self.metadata_address,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": str(self.total_supply),
            "metadata": {"uri": self.uri, "isMutable": self.metadata_mutable},
            "mintAuthority": self.mint_authority,
            "freezeAuthority": self.freeze_authority,
            "immutable": self.authorities_revoked and self.metadata_mutable is False,
            "launchTimestamp": self.launch_timestamp,
        }

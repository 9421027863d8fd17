"""
Metaplex Token Metadata: metadata address derivation, CreateMetadataAccountV3
instruction builder and a decoder for metadata accounts.
"""

import struct
from typing import Tuple

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from launcher.models import OnChainMetadata

METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

CREATE_METADATA_ACCOUNT_V3 = 33

MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200


def find_metadata_address(mint: Pubkey) -> Pubkey:
    """Metadata PDA: ["metadata", program id, mint]"""
    address, _bump = Pubkey.find_program_address(
        [b"metadata", bytes(METADATA_PROGRAM_ID), bytes(mint)],
        METADATA_PROGRAM_ID,
    )
    return address


def _encode_str(value: str) -> bytes:
    raw = value.encode('utf-8')
    return struct.pack('<I', len(raw)) + raw


def _read_str(data: bytes, offset: int) -> Tuple[str, int]:
    (length,) = struct.unpack_from('<I', data, offset)
    offset += 4
    raw = data[offset:offset + length]
    if len(raw) != length:
        raise ValueError("Metadata account data is truncated")
    # Stored strings are right-padded with NULs to their max length
    return raw.decode('utf-8').rstrip('\x00'), offset + length


def encode_create_metadata_v3(name: str, symbol: str, uri: str, is_mutable: bool = False,
                              seller_fee_basis_points: int = 0) -> bytes:
    """Borsh body for CreateMetadataAccountV3 with no creators, collection or uses"""
    return b''.join([
        struct.pack('<B', CREATE_METADATA_ACCOUNT_V3),
        # DataV2
        _encode_str(name),
        _encode_str(symbol),
        _encode_str(uri),
        struct.pack('<H', seller_fee_basis_points),
        b'\x00',  # creators: None
        b'\x00',  # collection: None
        b'\x00',  # uses: None
        struct.pack('<?', is_mutable),
        b'\x00',  # collection_details: None
    ])


def create_metadata_account_v3(mint: Pubkey, mint_authority: Pubkey, payer: Pubkey,
                               update_authority: Pubkey, name: str, symbol: str, uri: str,
                               is_mutable: bool = False) -> Instruction:
    """Instruction creating the token's metadata account"""
    if len(name.encode('utf-8')) > MAX_NAME_LENGTH:
        raise ValueError(f"Name exceeds {MAX_NAME_LENGTH} bytes")
    if len(symbol.encode('utf-8')) > MAX_SYMBOL_LENGTH:
        raise ValueError(f"Symbol exceeds {MAX_SYMBOL_LENGTH} bytes")
    if len(uri.encode('utf-8')) > MAX_URI_LENGTH:
        raise ValueError(f"Metadata URI exceeds {MAX_URI_LENGTH} bytes")

    accounts = [
        AccountMeta(pubkey=find_metadata_address(mint), is_signer=False, is_writable=True),
        AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=mint_authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=update_authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    data = encode_create_metadata_v3(name, symbol, uri, is_mutable=is_mutable)
    return Instruction(METADATA_PROGRAM_ID, data, accounts)


def decode_metadata_account(data: bytes) -> OnChainMetadata:
    """Parse the leading fields of a Metaplex metadata account"""
    if len(data) < 65:
        raise ValueError("Metadata account data is truncated")

    offset = 1  # account key discriminator
    update_authority = Pubkey.from_bytes(data[offset:offset + 32])
    offset += 32
    mint = Pubkey.from_bytes(data[offset:offset + 32])
    offset += 32

    name, offset = _read_str(data, offset)
    symbol, offset = _read_str(data, offset)
    uri, offset = _read_str(data, offset)
    offset += 2  # seller_fee_basis_points

    has_creators = data[offset]
    offset += 1
    if has_creators:
        (count,) = struct.unpack_from('<I', data, offset)
        offset += 4 + count * 34  # address + verified + share

    offset += 1  # primary_sale_happened
    is_mutable = bool(data[offset])

    return OnChainMetadata(
        update_authority=update_authority,
        mint=mint,
        name=name,
        symbol=symbol,
        uri=uri,
        is_mutable=is_mutable,
    )

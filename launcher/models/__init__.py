from launcher.models.launch import (
    ExecuteRequest,
    LaunchRequest,
    LaunchResult,
    LaunchSession,
    MetadataRecord,
    MintIdentity,
    PrepareResponse,
    SigningMode,
)
from launcher.models.ledger import (
    MINT_ACCOUNT_SIZE,
    AccountInfo,
    MintInfo,
    OnChainMetadata,
    TokenStatus,
)

__all__ = [
    'ExecuteRequest', 'LaunchRequest', 'LaunchResult', 'LaunchSession', 'MetadataRecord',
    'MintIdentity', 'PrepareResponse', 'SigningMode',
    'MINT_ACCOUNT_SIZE', 'AccountInfo', 'MintInfo', 'OnChainMetadata', 'TokenStatus',
]

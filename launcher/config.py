"""
Launcher configuration loaded from the environment
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

LAMPORTS_PER_SOL = 1_000_000_000

# Token settings are fixed for every launch
DEFAULT_DECIMALS = 9
DEFAULT_SUPPLY = 1_000_000_000 * 10 ** DEFAULT_DECIMALS  # 1 billion with 9 decimals

DEFAULT_RPC_URL = 'https://api.mainnet-beta.solana.com'
DEFAULT_PINATA_GATEWAY = 'https://gateway.pinata.cloud/ipfs'


@dataclass(frozen=True)
class LauncherConfig:
    """Everything the launcher and its services need, passed in explicitly"""
    master_wallet_secret: str = ''
    rpc_url: str = DEFAULT_RPC_URL
    commitment: str = 'confirmed'

    # Pinata (JWT preferred, legacy key pair accepted)
    pinata_jwt: Optional[str] = None
    pinata_api_key: Optional[str] = None
    pinata_secret_key: Optional[str] = None
    pinata_gateway_url: str = DEFAULT_PINATA_GATEWAY

    decimals: int = DEFAULT_DECIMALS
    total_supply: int = DEFAULT_SUPPLY
    launch_fee_lamports: int = LAMPORTS_PER_SOL // 10  # 0.1 SOL, paid by the master wallet

    explorer_cluster: Optional[str] = None  # None means mainnet
    platform_name: str = 'Launchium'

    # Timeouts in seconds
    publish_timeout: float = 120.0
    confirmation_timeout: float = 45.0

    session_ttl_seconds: float = 120.0
    max_pending_sessions: int = 1000
    session_reaper_interval: float = 30.0

    log_dir: Optional[str] = 'logs'

    @classmethod
    def from_env(cls) -> 'LauncherConfig':
        """Load configuration from environment"""
        load_dotenv()

        required_vars = ['MASTER_WALLET_SECRET']
        missing = [var for var in required_vars if not os.getenv(var)]
        if missing:
            raise ValueError(f"Missing required environment variables: {missing}")

        launch_fee_sol = float(os.getenv('LAUNCH_FEE_SOL', '0.1'))

        return cls(
            master_wallet_secret=os.getenv('MASTER_WALLET_SECRET', '').strip(),
            rpc_url=os.getenv('RPC_URL', DEFAULT_RPC_URL),
            commitment=os.getenv('COMMITMENT', 'confirmed'),
            pinata_jwt=os.getenv('PINATA_JWT') or None,
            pinata_api_key=os.getenv('PINATA_API_KEY') or None,
            pinata_secret_key=os.getenv('PINATA_SECRET_KEY') or None,
            pinata_gateway_url=os.getenv('PINATA_GATEWAY_URL', DEFAULT_PINATA_GATEWAY).rstrip('/'),
            launch_fee_lamports=int(launch_fee_sol * LAMPORTS_PER_SOL),
            explorer_cluster=os.getenv('EXPLORER_CLUSTER') or None,
            platform_name=os.getenv('PLATFORM_NAME', 'Launchium'),
            publish_timeout=int(os.getenv('API_TIMEOUT', '120000')) / 1000,
            confirmation_timeout=int(os.getenv('CONFIRMATION_TIMEOUT', '45000')) / 1000,
            session_ttl_seconds=float(os.getenv('SESSION_TTL_SECONDS', '120')),
            max_pending_sessions=int(os.getenv('MAX_PENDING_SESSIONS', '1000')),
            session_reaper_interval=float(os.getenv('SESSION_REAPER_INTERVAL', '30')),
            log_dir=os.getenv('LOG_DIR', 'logs') or None,
        )

    def __repr__(self) -> str:
        # Never echo secrets
        return f"LauncherConfig(rpc_url={self.rpc_url!r}, commitment={self.commitment!r})"

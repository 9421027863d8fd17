"""
Shared fixtures: a launcher wired to the in-memory ledger
"""

import base58
import pytest
from solders.keypair import Keypair

from fakes import FakeClock, FakeLedgerGateway
from launcher.config import LauncherConfig
from launcher.services import IPFSService, WalletService
from launcher.sessions import SessionStore
from token_launcher import TokenLauncher


@pytest.fixture
def issuer():
    return Keypair()


@pytest.fixture
def user():
    return Keypair()


@pytest.fixture
def config(issuer):
    return LauncherConfig(
        master_wallet_secret=base58.b58encode(bytes(issuer)).decode('ascii'),
        rpc_url='http://localhost:8899',
        explorer_cluster='devnet',
        log_dir=None,
    )


@pytest.fixture
def ledger():
    return FakeLedgerGateway()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions(clock):
    return SessionStore(ttl_seconds=120.0, max_sessions=1000, clock=clock)


@pytest.fixture
def ipfs_service():
    # Unconfigured: metadata falls back to inline data URIs
    return IPFSService()


@pytest.fixture
def launcher(config, ledger, ipfs_service, sessions):
    return TokenLauncher(
        config,
        ledger=ledger,
        ipfs_service=ipfs_service,
        wallet_service=WalletService.from_config(config),
        sessions=sessions,
    )

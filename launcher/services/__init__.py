from launcher.services.ipfs_service import IPFSService
from launcher.services.ledger_gateway import LedgerGateway
from launcher.services.wallet_service import WalletService

__all__ = ['IPFSService', 'LedgerGateway', 'WalletService']

"""
Narrow async surface over the Solana RPC client
"""

import asyncio
import logging
from typing import Optional

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction
from spl.token.instructions import get_associated_token_address

from launcher.config import LauncherConfig
from launcher.errors import LedgerError
from launcher.models import AccountInfo, MintInfo

RPC_ERRORS = (RPCException, SolanaRpcException, UnconfirmedTxError)


class LedgerGateway:
    """Submit, confirm and read. Every RPC failure surfaces as LedgerError."""

    def __init__(self, rpc_url: str, commitment: str = 'confirmed', confirmation_timeout: float = 45.0,
                 client: Optional[AsyncClient] = None):
        self.commitment = Commitment(commitment)
        self.confirmation_timeout = confirmation_timeout
        self.client = client or AsyncClient(rpc_url, commitment=self.commitment)
        self.logger = logging.getLogger('token_launcher')

    @classmethod
    def from_config(cls, config: LauncherConfig) -> 'LedgerGateway':
        return cls(config.rpc_url, config.commitment, config.confirmation_timeout)

    async def latest_blockhash(self) -> Hash:
        try:
            resp = await self.client.get_latest_blockhash(self.commitment)
        except RPC_ERRORS as e:
            raise LedgerError(f"Failed to fetch latest blockhash: {e}") from e
        return resp.value.blockhash

    async def minimum_balance_for_rent_exemption(self, size: int) -> int:
        try:
            resp = await self.client.get_minimum_balance_for_rent_exemption(size, self.commitment)
        except RPC_ERRORS as e:
            raise LedgerError(f"Failed to fetch rent exemption: {e}") from e
        return resp.value

    async def submit(self, transaction: Transaction) -> Signature:
        """Send a fully signed transaction (preflight enabled)"""
        opts = TxOpts(skip_preflight=False, preflight_commitment=self.commitment)
        try:
            resp = await self.client.send_raw_transaction(bytes(transaction), opts=opts)
        except RPC_ERRORS as e:
            raise LedgerError(f"Transaction submission failed: {e}") from e
        self.logger.debug(f"Transaction sent: {resp.value}")
        return resp.value

    async def confirm(self, signature: Signature) -> bool:
        """Wait (bounded) for confirmation; False if the transaction landed with an error"""
        try:
            resp = await asyncio.wait_for(
                self.client.confirm_transaction(signature, self.commitment),
                timeout=self.confirmation_timeout,
            )
        except asyncio.TimeoutError as e:
            raise LedgerError(
                f"Confirmation timed out after {self.confirmation_timeout:.0f}s for {signature}"
            ) from e
        except RPC_ERRORS as e:
            raise LedgerError(f"Confirmation failed for {signature}: {e}") from e

        status = resp.value[0] if resp.value else None
        if status is None:
            raise LedgerError(f"No status returned for {signature}")
        if status.err is not None:
            self.logger.error(f"Transaction {signature} failed on-chain: {status.err}")
            return False
        return True

    async def get_account(self, address: Pubkey) -> Optional[AccountInfo]:
        try:
            resp = await self.client.get_account_info(address, self.commitment)
        except RPC_ERRORS as e:
            raise LedgerError(f"Failed to read account {address}: {e}") from e

        account = resp.value
        if account is None:
            return None
        return AccountInfo(
            address=address,
            lamports=account.lamports,
            owner=account.owner,
            data=bytes(account.data),
        )

    async def get_mint(self, address: Pubkey) -> Optional[MintInfo]:
        account = await self.get_account(address)
        if account is None:
            return None
        try:
            return MintInfo.from_account(account)
        except ValueError as e:
            raise LedgerError(str(e)) from e

    def derive_associated_account(self, owner: Pubkey, mint: Pubkey) -> Pubkey:
        """Associated token account address for (owner, mint)"""
        return get_associated_token_address(owner, mint)

    async def close(self) -> None:
        await self.client.close()

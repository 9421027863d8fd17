#!/usr/bin/env python3
"""
Launchium Token Launcher
Launch immutable SPL tokens on Solana for users who don't hold the issuing wallet.

Every launch pins metadata, creates the mint with immutable metadata, mints the
whole supply to the user's wallet and then revokes mint + freeze authority.

Two ways to launch:
  Single-shot: launch(request)   - master wallet signs and pays for everything
  Two-phase:   prepare(request)  - returns a partially signed creation tx for the user
               execute(signed)   - submits the user-signed tx, then mints and revokes

Usage:
  python token_launcher.py launch <recipient> <name> <symbol> [description]
  python token_launcher.py status <mint>
  python token_launcher.py standards
  python token_launcher.py stats
"""

import asyncio
import base64
import binascii
import functools
import logging
import os
import struct
import sys
import time
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

# Solana
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import CreateAccountParams, create_account
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    AuthorityType,
    InitializeMintParams,
    MintToParams,
    SetAuthorityParams,
    create_associated_token_account,
    initialize_mint,
    mint_to,
    set_authority,
)

# Launcher package
from launcher.config import LauncherConfig
from launcher.errors import (
    LaunchError,
    LedgerError,
    SessionMismatchError,
    SessionNotFoundError,
    TokenNotFoundError,
    ValidationError,
)
from launcher.models import (
    MINT_ACCOUNT_SIZE,
    ExecuteRequest,
    LaunchRequest,
    LaunchResult,
    LaunchSession,
    MetadataRecord,
    MintIdentity,
    PrepareResponse,
    SigningMode,
    TokenStatus,
)
from launcher.services import IPFSService, LedgerGateway, WalletService
from launcher.services.token_metadata import (
    create_metadata_account_v3,
    decode_metadata_account,
    find_metadata_address,
)
from launcher.sessions import SessionStore
from launcher.utils import explorer_tx_url, format_token_amount, lamports_to_sol, parse_public_key
from launcher.validation import (
    MAX_IMAGE_BYTES,
    SUPPORTED_IMAGE_FORMATS,
    detect_image_type,
    validate_launch_request,
)


class LaunchProgress:
    """Which pipeline step a run is in, so failures can name it"""
    def __init__(self, step: str = 'validate'):
        self.step = step


class TokenLauncher:
    """Launch pipeline shared by the single-shot and two-phase modes"""

    def __init__(self, config: LauncherConfig, ledger: Optional[LedgerGateway] = None,
                 ipfs_service: Optional[IPFSService] = None,
                 wallet_service: Optional[WalletService] = None,
                 sessions: Optional[SessionStore] = None):
        """Initialize the launcher. Fails fast if the master wallet secret can't be decoded."""
        self.config = config
        self._setup_logging()

        self.wallet_service = wallet_service if wallet_service is not None else WalletService.from_config(config)
        issuer = self.wallet_service.get_master_keypair()

        self.ledger = ledger if ledger is not None else LedgerGateway.from_config(config)
        self.ipfs_service = ipfs_service if ipfs_service is not None else IPFSService.from_config(config)
        if sessions is None:
            sessions = SessionStore(config.session_ttl_seconds, config.max_pending_sessions)
        self.sessions = sessions
        self._reaper_task: Optional[asyncio.Task] = None

        # In-process launch tracking (not persisted)
        self.launch_history: Dict[str, Dict] = {}
        self.launch_durations: List[float] = []
        self.failed_launches = 0
        self.failures_by_step: Dict[str, int] = {}

        self.logger.info(f"Token launcher ready (issuer {issuer.pubkey()}, RPC {config.rpc_url})")
        if not self.ipfs_service.is_configured:
            self.logger.warning("Pinata not configured - metadata will use inline data URIs")

    def _setup_logging(self):
        """Setup logging"""
        self.logger = logging.getLogger('token_launcher')
        if self.logger.handlers:
            return
        self.logger.setLevel(logging.DEBUG)

        formatter = logging.Formatter('%(asctime)s | %(levelname)s | %(message)s')

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if self.config.log_dir:
            os.makedirs(self.config.log_dir, exist_ok=True)
            file_handler = logging.FileHandler(os.path.join(self.config.log_dir, 'launcher.log'), encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    @property
    def issuer(self) -> Keypair:
        return self.wallet_service.get_master_keypair()

    # Lifecycle

    def start(self) -> None:
        """Start purging abandoned prepare sessions in the background"""
        if self._reaper_task is None or self._reaper_task.done():
            self._reaper_task = asyncio.create_task(
                self.sessions.run_reaper(self.config.session_reaper_interval)
            )

    async def close(self) -> None:
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            try:
                await self._reaper_task
            except asyncio.CancelledError:
                pass
            self._reaper_task = None
        await self.ledger.close()

    async def __aenter__(self) -> 'TokenLauncher':
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Public operations

    async def launch(self, request: LaunchRequest) -> LaunchResult:
        """Single-shot launch: the master wallet signs every transaction"""
        progress = LaunchProgress()
        started = time.monotonic()
        self.logger.info(f"Starting token launch: {request.name} ({request.symbol}) for {request.recipient}")

        with self._track_failures(progress):
            mint, metadata = await self._prepare_launch(request, progress)

            progress.step = 'create_token'
            transaction = await self._build_creation_transaction(mint, metadata, request, SigningMode.ISSUER_SIGNS)
            result = await self._submit_creation_and_complete(
                transaction, mint.address, request, metadata, SigningMode.ISSUER_SIGNS, progress, started
            )

        self._record_success(result, metadata, started)
        return result

    async def prepare(self, request: LaunchRequest) -> PrepareResponse:
        """Two-phase, part one: build the creation tx for the user to co-sign. Nothing is submitted."""
        progress = LaunchProgress()
        self.logger.info(f"Preparing token launch: {request.name} ({request.symbol}) for {request.recipient}")

        with self._track_failures(progress):
            mint, metadata = await self._prepare_launch(request, progress)

            progress.step = 'create_token'
            transaction = await self._build_creation_transaction(mint, metadata, request, SigningMode.USER_SIGNS)

            session = LaunchSession(
                mint=mint,
                unsigned_transaction=bytes(transaction),
                request=request,
                metadata=metadata,
                created_at=self.sessions.clock(),
            )
            session_id = self.sessions.create(session)

        self.logger.info(f"Launch prepared for mint {mint.address}, waiting for user signature")
        return PrepareResponse(
            session_id=session_id,
            mint_address=str(mint.address),
            unsigned_transaction=base64.b64encode(bytes(transaction)).decode('ascii'),
            metadata_uri=metadata.uri,
            expires_in=self.sessions.ttl_seconds,
        )

    async def execute(self, execute_request: ExecuteRequest) -> LaunchResult:
        """Two-phase, part two: submit the user-signed creation tx, then mint and revoke"""
        progress = LaunchProgress('load_session')
        started = time.monotonic()

        with self._track_failures(progress):
            # Consumed up front: a session is never reused, whatever happens next
            session = self.sessions.consume(execute_request.session_id)
            if session is None:
                raise SessionNotFoundError("Launch session not found, already used or expired")

            progress.step = 'verify_signed_transaction'
            transaction = self._verify_signed_transaction(session, execute_request.signed_transaction)

            progress.step = 'create_token'
            result = await self._submit_creation_and_complete(
                transaction, session.mint.address, session.request, session.metadata,
                SigningMode.USER_SIGNS, progress, started
            )

        self._record_success(result, session.metadata, started)
        return result

    # Shared steps

    async def _prepare_launch(self, request: LaunchRequest,
                              progress: LaunchProgress) -> Tuple[MintIdentity, MetadataRecord]:
        """Validate, generate the mint identity and publish metadata"""
        progress.step = 'validate'
        validate_launch_request(request)

        progress.step = 'generate_identity'
        mint = MintIdentity.generate()
        self.logger.info(f"Mint address: {mint.address}")

        progress.step = 'publish_metadata'
        metadata = await self._publish_metadata(request)
        self.logger.info(f"Metadata URI: {metadata.uri if not metadata.is_inline else '(inline data URI)'}")
        return mint, metadata

    def _build_attributes(self, request: LaunchRequest) -> List[Dict]:
        whole_supply = self.config.total_supply // 10 ** self.config.decimals
        attributes = [
            {"trait_type": "Platform", "value": self.config.platform_name},
            {"trait_type": "Standard", "value": "SPL Token"},
            {"trait_type": "Decimals", "value": self.config.decimals},
            {"trait_type": "Supply", "value": f"{whole_supply:,}"},
            {"trait_type": "Immutable", "value": "true"},
        ]
        for label, link in (('Website', request.website), ('Twitter', request.twitter),
                            ('Telegram', request.telegram), ('Discord', request.discord)):
            if link:
                attributes.append({"trait_type": label, "value": link})
        return attributes

    async def _publish_metadata(self, request: LaunchRequest) -> MetadataRecord:
        record = MetadataRecord(
            name=request.name,
            symbol=request.symbol,
            description=request.description or f"{request.name} - Simple immutable token",
            image=request.image_url or '',
            external_url=request.website or '',
            attributes=self._build_attributes(request),
        )

        # An external image reference wins over uploaded bytes
        image_bytes = None if request.image_url else request.image_bytes
        content_type, extension = 'image/png', 'png'
        if image_bytes:
            content_type, extension = detect_image_type(image_bytes) or (content_type, extension)

        return await self.ipfs_service.publish(
            record,
            image_bytes=image_bytes,
            image_name=request.image_name or f"{request.symbol}_logo.{extension}",
            content_type=content_type,
        )

    async def _build_creation_transaction(self, mint: MintIdentity, metadata: MetadataRecord,
                                          request: LaunchRequest, mode: SigningMode) -> Transaction:
        """Create mint account + initialize mint + immutable metadata, signed by mint and issuer.

        ISSUER_SIGNS: the issuer pays, so the transaction comes back fully signed.
        USER_SIGNS: the recipient pays and still has to add the fee-payer signature.
        """
        issuer = self.issuer
        if mode is SigningMode.ISSUER_SIGNS:
            payer = issuer.pubkey()
        else:
            payer = Pubkey.from_string(request.recipient)

        rent = await self.ledger.minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)
        instructions = [
            create_account(CreateAccountParams(
                from_pubkey=payer,
                to_pubkey=mint.address,
                lamports=rent,
                space=MINT_ACCOUNT_SIZE,
                owner=TOKEN_PROGRAM_ID,
            )),
            initialize_mint(InitializeMintParams(
                decimals=self.config.decimals,
                program_id=TOKEN_PROGRAM_ID,
                mint=mint.address,
                mint_authority=issuer.pubkey(),
                freeze_authority=issuer.pubkey(),
            )),
            create_metadata_account_v3(
                mint=mint.address,
                mint_authority=issuer.pubkey(),
                payer=payer,
                update_authority=issuer.pubkey(),
                name=metadata.name,
                symbol=metadata.symbol,
                uri=metadata.uri,
                is_mutable=False,
            ),
        ]

        blockhash = await self.ledger.latest_blockhash()
        message = Message.new_with_blockhash(instructions, payer, blockhash)
        transaction = Transaction.new_unsigned(message)
        transaction.partial_sign([mint.keypair, issuer], blockhash)
        return transaction

    def _verify_signed_transaction(self, session: LaunchSession, signed_transaction: str) -> Transaction:
        """Decode the user's transaction and check it is the one we prepared, fully signed"""
        try:
            transaction = Transaction.from_bytes(base64.b64decode(signed_transaction, validate=True))
        except (binascii.Error, ValueError) as e:
            raise ValidationError(
                f"Signed transaction could not be decoded: {e}", step='verify_signed_transaction'
            ) from e

        prepared = Transaction.from_bytes(session.unsigned_transaction)
        if session.mint.address not in transaction.message.account_keys:
            raise SessionMismatchError(
                f"Signed transaction does not create mint {session.mint.address}"
            )
        if bytes(transaction.message) != bytes(prepared.message):
            raise SessionMismatchError("Signed transaction differs from the prepared transaction")

        if not transaction.is_signed() or not all(transaction.verify_with_results()):
            raise ValidationError(
                "Signed transaction is missing a signature or has an invalid one",
                step='verify_signed_transaction',
            )
        return transaction

    async def _submit_creation_and_complete(self, transaction: Transaction, mint: Pubkey,
                                            request: LaunchRequest, metadata: MetadataRecord,
                                            mode: SigningMode, progress: LaunchProgress,
                                            started: float) -> LaunchResult:
        # No cancellation once creation is submitted: the run finishes or fails on its own
        task = asyncio.ensure_future(
            self._create_and_complete(transaction, mint, request, metadata, mode, progress)
        )
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            task.add_done_callback(functools.partial(self._record_detached_outcome, metadata, progress, started))
            raise

    async def _create_and_complete(self, transaction: Transaction, mint: Pubkey, request: LaunchRequest,
                                   metadata: MetadataRecord, mode: SigningMode,
                                   progress: LaunchProgress) -> LaunchResult:
        """Steps 4-8: create, ensure ATA, mint, revoke, assemble"""
        progress.step = 'create_token'
        self.logger.info("Creating immutable token...")
        creation_signature = await self._submit_and_confirm(transaction, 'create_token')
        self.logger.info(f"Token created: {creation_signature}")

        issuer = self.issuer
        recipient = Pubkey.from_string(request.recipient)

        progress.step = 'ensure_recipient_account'
        user_token_account = self.ledger.derive_associated_account(recipient, mint)
        self.logger.info(f"User token account: {user_token_account}")
        if await self.ledger.get_account(user_token_account) is None:
            self.logger.info("Creating user token account...")
            await self._send_and_confirm(
                [create_associated_token_account(issuer.pubkey(), recipient, mint)],
                'ensure_recipient_account',
            )

        progress.step = 'mint'
        self.logger.info("Minting tokens to user...")
        await self._send_and_confirm(
            [mint_to(MintToParams(
                program_id=TOKEN_PROGRAM_ID,
                mint=mint,
                dest=user_token_account,
                mint_authority=issuer.pubkey(),
                amount=self.config.total_supply,
            ))],
            'mint',
        )
        self.logger.info(
            f"Minted {format_token_amount(self.config.total_supply, self.config.decimals)} tokens to user"
        )

        # Irreversible from here on
        progress.step = 'revoke_authorities'
        for authority_type, label in ((AuthorityType.MINT_TOKENS, 'mint'),
                                      (AuthorityType.FREEZE_ACCOUNT, 'freeze')):
            self.logger.info(f"Revoking {label} authority...")
            await self._send_and_confirm(
                [set_authority(SetAuthorityParams(
                    program_id=TOKEN_PROGRAM_ID,
                    account=mint,
                    authority=authority_type,
                    current_authority=issuer.pubkey(),
                    new_authority=None,
                ))],
                'revoke_authorities',
            )
        self.logger.info("All authorities revoked - token is now immutable")

        progress.step = 'assemble_result'
        fee = self.config.launch_fee_lamports
        return LaunchResult(
            mint_address=str(mint),
            metadata_address=str(find_metadata_address(mint)),
            user_token_account=str(user_token_account),
            total_supply=self.config.total_supply,
            user_balance=self.config.total_supply,
            fee=lamports_to_sol(fee),
            fee_lamports=fee,
            transaction_signature=str(creation_signature),
            explorer_url=explorer_tx_url(str(creation_signature), self.config.explorer_cluster),
            signing_mode=mode,
        )

    async def _send_and_confirm(self, instructions: List[Instruction], step: str) -> Signature:
        """Build, sign (issuer pays) and submit a transaction, then wait for confirmation"""
        issuer = self.issuer
        blockhash = await self.ledger.latest_blockhash()
        message = Message.new_with_blockhash(instructions, issuer.pubkey(), blockhash)
        transaction = Transaction([issuer], message, blockhash)
        return await self._submit_and_confirm(transaction, step)

    async def _submit_and_confirm(self, transaction: Transaction, step: str) -> Signature:
        try:
            signature = await self.ledger.submit(transaction)
            confirmed = await self.ledger.confirm(signature)
        except LedgerError as e:
            e.step = e.step or step
            raise
        if not confirmed:
            raise LedgerError(f"Transaction {signature} failed on-chain during {step}", step=step)
        return signature

    # Bookkeeping

    @contextmanager
    def _track_failures(self, progress: LaunchProgress):
        """Tag failures with the step they happened in and count them"""
        try:
            yield
        except LaunchError as e:
            self._record_failure(self._as_launch_error(e, progress))
            raise
        except Exception as e:
            error = self._as_launch_error(e, progress)
            self._record_failure(error)
            raise error from e

    @staticmethod
    def _as_launch_error(error: Exception, progress: LaunchProgress) -> LaunchError:
        if isinstance(error, LaunchError):
            error.step = error.step or progress.step
            return error
        return LaunchError(f"Token launch failed at {progress.step}: {error}", step=progress.step)

    def _record_detached_outcome(self, metadata: MetadataRecord, progress: LaunchProgress,
                                 started: float, task: asyncio.Future) -> None:
        """Bookkeeping for a run whose caller was cancelled after creation was submitted"""
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            self._record_success(task.result(), metadata, started)
            return
        failure = self._as_launch_error(error, progress)
        if failure is not error:
            failure.__cause__ = error
        self._record_failure(failure)

    def _record_failure(self, error: LaunchError) -> None:
        self.failed_launches += 1
        self.failures_by_step[error.step] = self.failures_by_step.get(error.step, 0) + 1
        self.logger.error(f"Token launch failed at {error.step}: {error.message}")

    def _record_success(self, result: LaunchResult, metadata: MetadataRecord, started: float) -> None:
        duration = time.monotonic() - started
        self.launch_durations.append(duration)
        self.launch_history[result.mint_address] = {
            'name': metadata.name,
            'symbol': metadata.symbol,
            'uri': metadata.uri,
            'launched_at': time.time(),
        }
        self.logger.info(f"Token launch completed in {duration:.1f}s: {result.mint_address}")
        self.logger.info(f"Explorer: {result.explorer_url}")

    # Read-only reporting

    async def get_token_status(self, mint_address: str) -> TokenStatus:
        """Current on-ledger state of a mint, enriched with what we know from launching it"""
        mint = parse_public_key(mint_address)
        if mint is None:
            raise ValidationError('Invalid mint address', step='status')

        self.logger.info(f"Fetching token status: {mint}")
        mint_info = await self.ledger.get_mint(mint)
        if mint_info is None:
            raise TokenNotFoundError(f"Mint account not found: {mint}", step='status')

        metadata_address = find_metadata_address(mint)
        name = symbol = uri = None
        metadata_mutable = None
        metadata_account = await self.ledger.get_account(metadata_address)
        if metadata_account is not None:
            try:
                onchain = decode_metadata_account(metadata_account.data)
                name, symbol, uri = onchain.name, onchain.symbol, onchain.uri
                metadata_mutable = onchain.is_mutable
            except (ValueError, IndexError, struct.error) as e:
                self.logger.warning(f"Could not decode metadata account {metadata_address}: {e}")

        known = self.launch_history.get(str(mint), {})
        return TokenStatus(
            mint_address=str(mint),
            metadata_address=str(metadata_address),
            decimals=mint_info.decimals,
            total_supply=mint_info.supply,
            name=name or known.get('name'),
            symbol=symbol or known.get('symbol'),
            uri=uri or known.get('uri'),
            mint_authority=str(mint_info.mint_authority) if mint_info.mint_authority else None,
            freeze_authority=str(mint_info.freeze_authority) if mint_info.freeze_authority else None,
            metadata_mutable=metadata_mutable,
            launch_timestamp=known.get('launched_at'),
        )

    def get_token_standards(self) -> Dict:
        return {
            'decimals': self.config.decimals,
            'supply': str(self.config.total_supply),
            'fee': f"{lamports_to_sol(self.config.launch_fee_lamports)} SOL (deducted from platform)",
            'immutable': True,
            'authorities': 'All revoked (mint, freeze, update)',
            'supportedFormats': list(SUPPORTED_IMAGE_FORMATS),
            'maxImageSize': f"{MAX_IMAGE_BYTES // (1024 * 1024)}MB",
        }

    def get_launch_statistics(self) -> Dict:
        launched = len(self.launch_durations)
        attempts = launched + self.failed_launches
        return {
            'totalTokensLaunched': launched,
            'failedLaunches': self.failed_launches,
            'failuresByStep': dict(self.failures_by_step),
            'averageLaunchSeconds': round(sum(self.launch_durations) / launched, 2) if launched else None,
            'successRate': f"{launched / attempts * 100:.1f}%" if attempts else None,
            'pendingSessions': len(self.sessions),
            'fee': f"{lamports_to_sol(self.config.launch_fee_lamports)} SOL per token",
            'immutability': 'Full (all authorities revoked)',
        }


async def main(argv: List[str]):
    """Command line entry point"""
    try:
        config = LauncherConfig.from_env()
    except ValueError as e:
        print(f"\n❌ CONFIGURATION ERROR: {e}")
        print("   Please ensure you have a .env file with all required variables.")
        return 1

    command = argv[0] if argv else ''
    async with TokenLauncher(config) as launcher:
        if command == 'launch' and len(argv) >= 4:
            request = LaunchRequest(
                recipient=argv[1],
                name=argv[2],
                symbol=argv[3],
                description=argv[4] if len(argv) > 4 else None,
            )
            print(f"\n🚀 Launching {request.name} ({request.symbol}) for {request.recipient}")
            try:
                result = await launcher.launch(request)
            except LaunchError as e:
                print(f"\n❌ LAUNCH FAILED at {e.step}: {e.message}")
                return 1
            print("\n🎉 LAUNCH SUCCESSFUL!")
            print(f"   Mint: {result.mint_address}")
            print(f"   Metadata: {result.metadata_address}")
            print(f"   User token account: {result.user_token_account}")
            print(f"   Supply: {format_token_amount(result.total_supply, config.decimals)}")
            print(f"   Explorer: {result.explorer_url}")

        elif command == 'status' and len(argv) >= 2:
            try:
                status = await launcher.get_token_status(argv[1])
            except LaunchError as e:
                print(f"❌ {e.message}")
                return 1
            for key, value in status.to_dict().items():
                print(f"   {key}: {value}")

        elif command == 'standards':
            for key, value in launcher.get_token_standards().items():
                print(f"   {key}: {value}")

        elif command == 'stats':
            for key, value in launcher.get_launch_statistics().items():
                print(f"   {key}: {value}")

        else:
            print(__doc__)
            return 2
    return 0


def cli():
    sys.exit(asyncio.run(main(sys.argv[1:])))


if __name__ == "__main__":
    cli()

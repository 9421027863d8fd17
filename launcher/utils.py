"""
Small formatting helpers shared by the launcher
"""

from typing import Optional

from solders.pubkey import Pubkey

from launcher.config import LAMPORTS_PER_SOL


def parse_public_key(value: Optional[str]) -> Optional[Pubkey]:
    """Parse a base-58 address, returning None when it is not one"""
    if not value:
        return None
    try:
        return Pubkey.from_string(value.strip())
    except ValueError:
        return None


def format_token_amount(amount: int, decimals: int) -> str:
    """Render raw base units as a decimal string without trailing zeros"""
    divisor = 10 ** decimals
    whole, fraction = divmod(amount, divisor)
    if fraction == 0:
        return str(whole)
    fraction_str = str(fraction).rjust(decimals, '0').rstrip('0')
    return f"{whole}.{fraction_str}"


def lamports_to_sol(lamports: int) -> str:
    """100_000_000 -> '0.1'"""
    return format_token_amount(lamports, len(str(LAMPORTS_PER_SOL)) - 1)


def explorer_tx_url(signature: str, cluster: Optional[str] = None) -> str:
    url = f"https://explorer.solana.com/tx/{signature}"
    if cluster and cluster != 'mainnet-beta':
        url += f"?cluster={cluster}"
    return url

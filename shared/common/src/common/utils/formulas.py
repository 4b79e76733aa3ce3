WEI_PER_QKC = 10**18

# Root chain PoSW allowance unit
ROOT_ALLOWANCE = 681_500 * WEI_PER_QKC

# Shard PoSW allowance units, indexed by chain id
SHARD_ALLOWANCES = (
    0,
    13_629 * WEI_PER_QKC,
    27_259 * WEI_PER_QKC,
    54_518 * WEI_PER_QKC,
    109_035 * WEI_PER_QKC,
    218_071 * WEI_PER_QKC,
    27_259 * WEI_PER_QKC,
    109_035 * WEI_PER_QKC,
)

DIFFICULTY_DIVISOR = 20


def shard_allowance_unit(chain_id: int) -> int:
    """Return the allowance unit for a shard chain, or 0 when the chain has none."""
    if 0 <= chain_id < len(SHARD_ALLOWANCES):
        return SHARD_ALLOWANCES[chain_id]
    return 0


def calculate_allowances(balance: int, unit: int) -> int:
    """Calculate how many blocks per window a balance entitles an address to.

    Args:
        balance (int): Held or staked balance in wei.
        unit (int): Balance required per allowance, in wei.

    Returns:
        int: The number of allowances.
    """
    if unit <= 0:
        raise ValueError(f"Allowance unit must be positive, got {unit}")
    return balance // unit


def shard_difficulty(raw_difficulty: int) -> int:
    return raw_difficulty // DIFFICULTY_DIVISOR


def format_difficulty(difficulty: int) -> str:
    return f"{difficulty / 1e9:.4f}G"

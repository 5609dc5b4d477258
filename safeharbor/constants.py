"""
SafeHarbor constants.

Seeds, record layout sizes and field bounds shared by every record type.
"""

# ============================================================
# Address derivation
# ============================================================

REGISTRY_SEED = b"registry_v2"
AGREEMENT_SEED = b"agreement_v2"
ADOPTION_SEED = b"adopt_v2"

PDA_MARKER = b"ProgramDerivedAddress"

MAX_SEED_LEN = 32
MAX_SEEDS = 16

# ============================================================
# Record layout
# ============================================================

DISCRIMINATOR_SIZE = 8
PUBKEY_SIZE = 32
U64_SIZE = 8
BOOL_SIZE = 1
ENUM_TAG_SIZE = 1
LENGTH_PREFIX_SIZE = 4

# Growth headroom added on top of the required size when a record is allocated.
GROWTH_BUFFER = 1024
GROWTH_DIVISOR = 4

MAX_RECORD_SIZE = 10240

# ============================================================
# Registry bounds
# ============================================================

MAX_REGISTRY_NETWORKS = 32
MAX_NETWORK_ID_LEN = 64

# ============================================================
# Agreement bounds
# ============================================================

MAX_PROTOCOL_NAME_LEN = 64
MAX_CONTACTS = 16
MAX_CONTACT_NAME_LEN = 64
MAX_CONTACT_INFO_LEN = 64
MAX_AGREEMENT_URI_LEN = 256
MAX_DILIGENCE_REQUIREMENTS_LEN = 512
MAX_AGREEMENT_CHAINS = 32

# ============================================================
# Scope bounds (agreement chains and adoptions)
# ============================================================

MAX_ACCOUNTS_PER_CHAIN = 64
MAX_ACCOUNT_ADDR_LEN = 64
MAX_ASSET_RECOVERY_ADDR_LEN = 64

MAX_BOUNTY_PERCENTAGE = 100
U64_MAX = 2 ** 64 - 1

VALID_URI_SCHEMES = ("ipfs://", "https://", "http://", "ar://")

EIP155_NAMESPACE = "eip155"
SOLANA_NAMESPACE = "solana"

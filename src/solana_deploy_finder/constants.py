# Loaders
BPF_LOADER_PROGRAM_ID = "BPFLoader1111111111111111111111111111111111"
BPF_LOADER_2_PROGRAM_ID = "BPFLoader2111111111111111111111111111111111"
BPF_UPGRADEABLE_LOADER_PROGRAM_ID = "BPFLoaderUpgradeab1e11111111111111111111111"

LOADER_PROGRAM_IDS = frozenset({
    BPF_LOADER_PROGRAM_ID,
    BPF_LOADER_2_PROGRAM_ID,
    BPF_UPGRADEABLE_LOADER_PROGRAM_ID,
})

# RPC
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
SIGNATURE_PAGE_SIZE = 1000
RPC_COMMITMENT = "confirmed"

# Pacing
REQUEST_INTERVAL_SECONDS = 8.0
MAX_RETRIES = 5

# Sample programs
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

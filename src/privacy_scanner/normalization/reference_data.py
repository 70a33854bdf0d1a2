"""Reference data for normalization.

Well-known Solana program ids and the instruction category each maps to. Only
programs listed here are treated as "core" when deciding whether an account in
a partially decoded instruction is a program-derived address.
"""

from privacy_scanner.normalization.schema import InstructionCategory

SYSTEM_PROGRAM = "11111111111111111111111111111111"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
ASSOCIATED_TOKEN_PROGRAM = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
STAKE_PROGRAM = "Stake11111111111111111111111111111111111111"
VOTE_PROGRAM = "Vote111111111111111111111111111111111111111"
MEMO_PROGRAM = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"
MEMO_V1_PROGRAM = "Memo1UhkJRfHyvLMcVucJwxXeuD728EqVDDwQDxFMNo"
COMPUTE_BUDGET_PROGRAM = "ComputeBudget111111111111111111111111111111"

METAPLEX_METADATA_PROGRAM = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
NAME_SERVICE_PROGRAM = "namesLPneVptA9Z5rqUDD9tMTWEJwofgaYwp8cawRkX"

# Native balance changes are reported in lamports.
LAMPORTS_PER_SOL = 1_000_000_000
# Base fee charged per signature, in lamports.
BASE_FEE_PER_SIGNATURE = 5_000

TOKEN_PROGRAMS = frozenset({TOKEN_PROGRAM, TOKEN_2022_PROGRAM, ASSOCIATED_TOKEN_PROGRAM})
MEMO_PROGRAMS = frozenset({MEMO_PROGRAM, MEMO_V1_PROGRAM})

# Parsed instruction types that move tokens rather than manage accounts.
TOKEN_TRANSFER_TYPES = frozenset({"transfer", "transferChecked"})

# Fixed categories for well-known programs. Token programs are resolved per
# instruction type, so they are not listed here.
PROGRAM_CATEGORIES = {
    SYSTEM_PROGRAM: InstructionCategory.TRANSFER,
    STAKE_PROGRAM: InstructionCategory.STAKE,
    VOTE_PROGRAM: InstructionCategory.VOTE,
    MEMO_PROGRAM: InstructionCategory.PROGRAM_INTERACTION,
    MEMO_V1_PROGRAM: InstructionCategory.PROGRAM_INTERACTION,
    COMPUTE_BUDGET_PROGRAM: InstructionCategory.PROGRAM_INTERACTION,
}

CORE_PROGRAMS = frozenset(PROGRAM_CATEGORIES) | TOKEN_PROGRAMS

# Aggregators and AMMs whose ids do not contain "swap".
KNOWN_SWAP_PROGRAMS = frozenset(
    {
        "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",  # Jupiter v6
        "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",  # Orca Whirlpool
        "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",  # Raydium AMM v4
    }
)

# Parsed instruction types that create or close token accounts.
TOKEN_ACCOUNT_CREATE_TYPES = frozenset({"initializeAccount", "initializeAccount2", "initializeAccount3"})
ATA_CREATE_TYPES = frozenset({"create", "createIdempotent"})
TOKEN_ACCOUNT_CLOSE_TYPES = frozenset({"closeAccount"})

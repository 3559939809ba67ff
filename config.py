# --- File: config.py ---
import os
from dotenv import load_dotenv
import logging

from zk_crypto_package.protocol_constants import MIN_PBKDF2_ITERATIONS, REPLAY_WINDOW_SECONDS as DEFAULT_REPLAY_WINDOW

load_dotenv()

LOG_LEVEL_FROM_ENV = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, LOG_LEVEL_FROM_ENV, logging.INFO)

logging.basicConfig(
    level=numeric_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _optional_float(name: str, default: str):
    raw = os.getenv(name, default)
    return float(raw) if raw else None


# --- Circuit Artifacts (pre-provisioned, read-only) ---
CIRCUIT_WASM_PATH = os.getenv("CIRCUIT_WASM_PATH", "./circuits/build/message_js/message.wasm")
CIRCUIT_ZKEY_PATH = os.getenv("CIRCUIT_ZKEY_PATH", "./circuits/build/message_final.zkey")
VERIFICATION_KEY_PATH = os.getenv("VERIFICATION_KEY_PATH", "./circuits/build/verification_key.json")
SNARKJS_COMMAND = os.getenv("SNARKJS_COMMAND", "npx snarkjs")

# --- Crypto Settings ---
PBKDF2_ITERATIONS = int(os.getenv("PBKDF2_ITERATIONS", "1000"))
REPLAY_WINDOW_SECONDS = int(os.getenv("REPLAY_WINDOW_SECONDS", str(DEFAULT_REPLAY_WINDOW)))

# --- Timeouts (seconds; empty means no timeout) ---
PROOF_TIMEOUT_SECONDS = _optional_float("PROOF_TIMEOUT_SECONDS", "60")
VERIFY_TIMEOUT_SECONDS = _optional_float("VERIFY_TIMEOUT_SECONDS", "30")
STORE_TIMEOUT_SECONDS = _optional_float("STORE_TIMEOUT_SECONDS", "30")
PROOF_WORKERS = int(os.getenv("PROOF_WORKERS", "2"))

# --- Blob Store Settings ---
BLOB_STORE_PROVIDER = os.getenv("BLOB_STORE_PROVIDER", "walrus")  # 'walrus' or 'memory'
WALRUS_PUBLISHER_URL = os.getenv("WALRUS_PUBLISHER_URL", "https://publisher.walrus-testnet.walrus.space")
WALRUS_AGGREGATOR_URL = os.getenv("WALRUS_AGGREGATOR_URL", "https://aggregator.walrus-testnet.walrus.space")
WALRUS_EPOCHS = int(os.getenv("WALRUS_EPOCHS", "1")) or None

# --- Message Index Settings ---
SQLITE_DB_PATH = os.getenv("SQLITE_DB_PATH", "./message_index.db")

# --- Server Settings ---
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))


# --- Basic Validation ---
if PBKDF2_ITERATIONS < MIN_PBKDF2_ITERATIONS:
    logger.warning(f"PBKDF2_ITERATIONS={PBKDF2_ITERATIONS} is below {MIN_PBKDF2_ITERATIONS}. Using {MIN_PBKDF2_ITERATIONS}.")
    PBKDF2_ITERATIONS = MIN_PBKDF2_ITERATIONS

for _name, _path in (
    ("Circuit wasm", CIRCUIT_WASM_PATH),
    ("Proving key", CIRCUIT_ZKEY_PATH),
    ("Verification key", VERIFICATION_KEY_PATH),
):
    if not os.path.exists(_path):
        logger.warning(f"{_name} not found at {_path}. Proof features will be unavailable until it is provisioned.")

if BLOB_STORE_PROVIDER not in ("walrus", "memory"):
    logger.warning(f"Unknown BLOB_STORE_PROVIDER '{BLOB_STORE_PROVIDER}'. Expected 'walrus' or 'memory'.")

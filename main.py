# --- File: main.py ---
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from api import endpoints
from api.models import (
    HealthResponse, KeyPairResponse, SendMessageResponse, MessageListResponse,
    OpenMessageResponse, MessageSummary, VerifyProofResponse, ErrorResponse,
)
from core.blob_store import create_blob_store
from core.message_index import SQLiteMessageIndex
from security.secure_communication import SecureMessenger
from zk_crypto_package import (
    HashContextProvider, ProofGateway, ProtocolError, SnarkjsProvingBackend, load_verification_key,
)
from contextlib import asynccontextmanager
import uvicorn
import logging
from typing import Optional
import os
import config  # Your config file

# Global instances owned by the lifespan (released on shutdown)
_gateway_instance: Optional[ProofGateway] = None
_message_index_instance: Optional[SQLiteMessageIndex] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    logging.info("Application startup sequence initiated...")
    global _gateway_instance, _message_index_instance

    try:
        if endpoints._hash_provider_instance is None:
            endpoints._hash_provider_instance = HashContextProvider()
        logging.info("Lifespan: Building Poseidon hash context...")
        hash_context = await endpoints._hash_provider_instance.get()

        if endpoints._messenger_instance is None:
            logging.info("Lifespan: Loading Groth16 verification key...")
            verification_key = load_verification_key(config.VERIFICATION_KEY_PATH)
            backend = SnarkjsProvingBackend(
                wasm_path=config.CIRCUIT_WASM_PATH,
                zkey_path=config.CIRCUIT_ZKEY_PATH,
                command=config.SNARKJS_COMMAND,
            )
            _gateway_instance = ProofGateway(
                hash_context, backend, verification_key, max_workers=config.PROOF_WORKERS
            )

            logging.info(f"Lifespan: Initializing blob store ({config.BLOB_STORE_PROVIDER})...")
            blob_store = create_blob_store(config.BLOB_STORE_PROVIDER)
            endpoints._blob_store_name = config.BLOB_STORE_PROVIDER

            logging.info("Lifespan: Initializing message index...")
            _message_index_instance = SQLiteMessageIndex(config.SQLITE_DB_PATH)

            endpoints._messenger_instance = SecureMessenger(
                hash_context=hash_context,
                gateway=_gateway_instance,
                blob_store=blob_store,
                index=_message_index_instance,
                pbkdf2_iterations=config.PBKDF2_ITERATIONS,
                replay_window=config.REPLAY_WINDOW_SECONDS,
                proof_timeout=config.PROOF_TIMEOUT_SECONDS,
                verify_timeout=config.VERIFY_TIMEOUT_SECONDS,
                store_timeout=config.STORE_TIMEOUT_SECONDS,
            )
            logging.info("Lifespan: SecureMessenger initialized.")
        logging.info("All core components pre-initialized via lifespan.")
    except Exception:
        logging.exception("FATAL: Error during application startup initialization. Messaging endpoints will return 503.")

    yield

    # --- Shutdown ---
    logging.info("Application shutdown sequence initiated...")
    if _gateway_instance:
        _gateway_instance.close()
    if _message_index_instance:
        _message_index_instance.close()
    logging.info("Application shutdown complete.")


app = FastAPI(
    title="ZK Message Courier API",
    description="API for sending and opening zero-knowledge authenticated, encrypted messages.",
    version="0.1.0",
    lifespan=lifespan,
)

origins = config.CORS_ALLOWED_ORIGINS
logging.info(f"CORS allowed origins: {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ProtocolError)
async def protocol_exception_handler(request: Request, exc: ProtocolError):
    log = logging.error if exc.status_code >= 500 else logging.warning
    log(f"{type(exc).__name__}: Status Code={exc.status_code}, Detail={exc.message}, Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "error": type(exc).__name__, "details": exc.details},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logging.error(f"HTTP Exception: Status Code={exc.status_code}, Detail={exc.detail}, Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": f"An error occurred: {exc.detail}", "error": "HTTPException"},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logging.exception(f"Unhandled Exception at Path {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"message": "An unexpected internal server error occurred. Please check server logs.", "error": "InternalError"},
    )


_error_responses = {code: {"model": ErrorResponse} for code in (400, 404, 422, 503, 504)}

app.get(
    "/api/health", response_model=HealthResponse, summary="Service Health",
    tags=["General"]
)(endpoints.health)

app.post(
    "/api/generate-keys", response_model=KeyPairResponse, summary="Generate an Ephemeral Key Pair",
    tags=["Keys"], responses=_error_responses
)(endpoints.generate_keys)

app.post(
    "/api/messages", response_model=SendMessageResponse, summary="Encrypt, Prove and Store a Message",
    tags=["Messages"], status_code=201, responses=_error_responses
)(endpoints.send_message)

app.get(
    "/api/messages", response_model=MessageListResponse, summary="List Messages for a Participant",
    tags=["Messages"], responses=_error_responses
)(endpoints.list_messages)

app.post(
    "/api/messages/{message_id}/open", response_model=OpenMessageResponse, summary="Verify and Decrypt a Message",
    tags=["Messages"], responses=_error_responses
)(endpoints.open_message)

app.patch(
    "/api/messages/{message_id}/status", response_model=MessageSummary, summary="Update Message Status",
    tags=["Messages"], responses=_error_responses
)(endpoints.update_status)

app.post(
    "/api/verify", response_model=VerifyProofResponse, summary="Verify a Groth16 Proof",
    tags=["Proofs"], responses=_error_responses
)(endpoints.verify_proof)


@app.get("/", summary="Root endpoint", tags=["General"], include_in_schema=False)
async def read_root():
    return {"message": "ZK Message Courier API. See /docs for details."}

if __name__ == "__main__":
    logging.info("Starting ZK Message Courier API server using Uvicorn...")
    log_level = os.getenv("LOG_LEVEL", "info").lower()
    reload_enabled = os.getenv("RELOAD", "false").lower() == "true"

    logging.info(f"Server starting on {config.HOST}:{config.PORT} with log level {log_level} and reload {'enabled' if reload_enabled else 'disabled'}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        log_level=log_level,
        reload=reload_enabled
    )

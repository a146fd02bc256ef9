"""Update NFT metadata through a remote API and sign the result locally."""

from .api_client import ShyftUpdateClient
from .config import ConfigurationError, UpdaterConfig, load_updater_config
from .errors import (
    BatchFileError,
    FieldValueError,
    InvalidKeyEncoding,
    MalformedTransaction,
    NFTUpdaterError,
    RemoteRequestFailed,
    ResponseShapeError,
    SigningOrSubmissionFailed,
)
from .keys import KeyEncoding, KeyMaterial, normalize_private_key
from .pipeline import (
    SigningCredentials,
    SubmissionResult,
    UpdatePipeline,
    build_pipeline,
    load_batch_file,
)
from .rpc_client import RPCError, RPCTransportError, SolanaRPCClient
from .signer import TransactionSigner

__all__ = [
    "BatchFileError",
    "ConfigurationError",
    "FieldValueError",
    "InvalidKeyEncoding",
    "KeyEncoding",
    "KeyMaterial",
    "MalformedTransaction",
    "NFTUpdaterError",
    "RPCError",
    "RPCTransportError",
    "RemoteRequestFailed",
    "ResponseShapeError",
    "ShyftUpdateClient",
    "SigningCredentials",
    "SigningOrSubmissionFailed",
    "SolanaRPCClient",
    "SubmissionResult",
    "TransactionSigner",
    "UpdatePipeline",
    "UpdaterConfig",
    "build_pipeline",
    "load_batch_file",
    "load_updater_config",
    "normalize_private_key",
]

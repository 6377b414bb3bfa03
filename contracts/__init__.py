"""Pydantic contracts for the smart-contract pipeline.

Every Generate/Compile/Deploy handoff is typed through these contracts.
"""

from .chain_contracts import (
    ChainTarget,
    CHAIN_ALIASES,
    UnsupportedChainError,
    resolve_chain,
)

from .result_contracts import (
    ErrorKind,
    PipelineError,
    Result,
    ResultError,
)

from .artifact_contracts import (
    UploadedFile,
    GeneratedArtifact,
    CompiledArtifact,
    DeploymentResult,
    TEXT_PLAIN,
    APPLICATION_ZIP,
    APPLICATION_WASM,
    APPLICATION_JSON,
    OCTET_STREAM,
)

from .process_contracts import ProcessExecutionResult

__all__ = [
    # Chains
    "ChainTarget",
    "CHAIN_ALIASES",
    "UnsupportedChainError",
    "resolve_chain",
    # Results
    "ErrorKind",
    "PipelineError",
    "Result",
    "ResultError",
    # Artifacts
    "UploadedFile",
    "GeneratedArtifact",
    "CompiledArtifact",
    "DeploymentResult",
    "TEXT_PLAIN",
    "APPLICATION_ZIP",
    "APPLICATION_WASM",
    "APPLICATION_JSON",
    "OCTET_STREAM",
    # Processes
    "ProcessExecutionResult",
]

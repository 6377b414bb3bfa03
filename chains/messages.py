"""User-facing messages returned in PipelineError results."""

# Upload validation
EMPTY_FILE = "The uploaded file is empty"
EMPTY_JSON = "The uploaded specification is empty"
FILE_TOO_LARGE = "The uploaded file exceeds the {limit_mb} MB limit"
INVALID_JSON_FILE = "The specification must be a .json file"
INVALID_JSON_CONTENT = "The specification is not valid JSON: {detail}"
JSON_NOT_OBJECT = "The specification must be a JSON object"
INVALID_SOLIDITY_FILE = "The source file must be a .sol file"
INVALID_ZIP_FILE = "The project must be uploaded as a .zip archive"
INVALID_ARCHIVE = "The uploaded archive could not be extracted: {detail}"
INVALID_CONTRACT_NAME = "'{name}' is not a valid Solidity contract name"

# Compile
COMPILER_FAILED = "Compiler exited with code {exit_code} and no diagnostics"
COMPILER_TIMED_OUT = "Compilation timed out after {timeout:g} seconds"
NOT_FOUND_BIN = "Compiled bytecode (.bin) not found"
NOT_FOUND_ABI = "Compiled ABI (.abi) not found"
NOT_FOUND_SO = "Compiled program (.so) not found in target/deploy"
WASM_FILE_NOT_FOUND = "Compiled package (.wasm) not found"
SCRYPTO_PROJECT_NOT_FOUND = "No Cargo.toml found in the uploaded Scrypto project"
ANCHOR_PROJECT_NOT_FOUND = "No Anchor.toml found in the uploaded Anchor project"
AMBIGUOUS_SCHEMA = "Several schema files were produced: {candidates}"

# Deploy
INVALID_ABI_FILE = "The ABI must be a .abi file"
EMPTY_ABI = "The ABI file is empty"
REQUIRED_ABI = "An ABI file is required to deploy an EVM contract"
INVALID_BYTECODE_FILE = "The bytecode must be a {extension} file"
EMPTY_BYTECODE = "The bytecode file is empty"
REQUIRED_SCHEMA = "A package definition (.rpd) is required to deploy a Scrypto package"
INVALID_SCHEMA_FILE = "The package definition must be a .rpd file"
EMPTY_SCHEMA = "The package definition is empty"
INVALID_KEYPAIR_FILE = "The deployer keypair must be a .json file"
EMPTY_KEYPAIR = "The deployer keypair file is empty"
INVALID_CONFIGURATION = "Chain configuration is invalid: {detail}"
NODE_NOT_RUNNING = "The {chain} node at {host}:{port} is not reachable"
FAILED_TO_START_NODE = "Failed to start the local {chain} node: {detail}"
FAILED_TO_START_PROCESS = "Required tool '{command}' could not be started"
DEPLOY_TIMED_OUT = "Deployment timed out after {timeout:g} seconds"
DEPLOY_FAILED = "Deployment failed: {detail}"
ADDRESS_NOT_FOUND = "Deployment address not found in deploy output"
ACCOUNT_SETUP_FAILED = "Could not prepare a deployer account: {detail}"
NO_ACCOUNT = "No simulator account exists and auto-funding is disabled"
KEYGEN_FAILED = "Could not create a keypair: {detail}"
CONTRACT_DEPLOY_REVERTED = "Deployment transaction {tx} was mined but reverted"
CHAIN_CLIENT_ERROR = "Chain client error: {detail}"

# Generic
INTERNAL_ERROR = "Internal error while running {operation}; see server logs (op={op_id})"
OPERATION_CANCELLED = "The {operation} operation was cancelled"

"""web3 client used to submit EVM deployments."""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from eth_account import Account
from web3 import Web3

from config import EthereumSettings


@dataclass
class DeployReceipt:
    """What the deployer needs from a mined deployment transaction."""
    transaction_hash: str
    contract_address: Optional[str]
    status: int


class EthereumClient:
    """Thin synchronous wrapper over Web3 for contract creation."""

    def __init__(self, rpc_url: str, private_key: str, request_timeout: float = 30.0):
        self.web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        self.account = Account.from_key(private_key)

    def deploy_contract(
        self,
        abi: List[Any],
        bytecode: str,
        gas_limit: int,
        receipt_timeout: float,
    ) -> DeployReceipt:
        """Sign and send a contract-creation transaction, then wait for its receipt."""
        eth = self.web3.eth
        contract = eth.contract(abi=abi, bytecode=bytecode)
        transaction = contract.constructor().build_transaction({
            "from": self.account.address,
            "nonce": eth.get_transaction_count(self.account.address),
            "gas": gas_limit,
            "chainId": eth.chain_id,
        })
        signed = self.account.sign_transaction(transaction)
        tx_hash = eth.send_raw_transaction(signed.raw_transaction)
        receipt = eth.wait_for_transaction_receipt(tx_hash, timeout=receipt_timeout)
        return DeployReceipt(
            transaction_hash=Web3.to_hex(tx_hash),
            contract_address=receipt.get("contractAddress"),
            status=int(receipt.get("status", 0)),
        )


EthereumClientFactory = Callable[[EthereumSettings], EthereumClient]


def create_ethereum_client(ethereum: EthereumSettings) -> EthereumClient:
    return EthereumClient(ethereum.rpc_url, ethereum.private_key)

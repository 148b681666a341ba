"""
core/blockchain.py — Land Event Ledger
=======================================
Every land lifecycle event (registration, review, purchase request, owner
decision, edit) is anchored on a ledger; the returned hash is kept on the
land row and in its audit trail.

Backends (BLOCKCHAIN_BACKEND in .env):
  "simulation"  in-process hash-linked chain, nothing to install or run
  "ethereum"    Ganache/Hardhat or a public network through web3.py; the
                event digest travels as transaction data

Usage:  from core.blockchain import blockchain
        receipt = await blockchain.record("LAND_REGISTER", {...})
        receipt["hash"]
"""

import asyncio
import hashlib
import json
import logging
from datetime import datetime
from typing import Dict, List, Optional

from config import settings

logger = logging.getLogger("ardhi.blockchain")

GENESIS_PREV = "0" * 64


def event_digest(event: str, payload: dict) -> str:
    """SHA3-256 over the canonical JSON of an event."""
    body = json.dumps({"event": event, "payload": payload}, sort_keys=True, default=str)
    return hashlib.sha3_256(body.encode()).hexdigest()


# ── In-process ledger ─────────────────────────────────────────────────────────
class SimulatedChain:
    """
    Hash-linked list of receipts held in memory. Restarting the server
    starts a fresh chain; the database keeps the hashes it was given.
    """

    name = "simulation"

    def __init__(self):
        self.chain: List[dict] = []
        self._by_hash: Dict[str, dict] = {}

    async def connect(self):
        if not self.chain:
            self._append("GENESIS", {"registry": settings.APP_NAME})
        logger.info(f"Simulated ledger ready, height {len(self.chain)}")

    async def disconnect(self):
        logger.info("Simulated ledger closed")

    async def ping(self) -> str:
        return f"ok (simulated, height {len(self.chain)})"

    def _append(self, event: str, payload: dict) -> dict:
        prev = self.chain[-1]["hash"] if self.chain else GENESIS_PREV
        recorded_at = datetime.utcnow().isoformat()
        number = len(self.chain)
        digest = event_digest(event, {
            "payload": payload, "number": number, "prev": prev, "at": recorded_at,
        })
        receipt = {
            "number": number,
            "event": event,
            "payload": payload,
            "prev_hash": prev,
            "hash": digest,
            "recorded_at": recorded_at,
        }
        self.chain.append(receipt)
        self._by_hash[digest] = receipt
        return receipt

    async def record(self, event: str, payload: dict) -> dict:
        receipt = self._append(event, payload)
        logger.info(f"Ledger #{receipt['number']} {event} {receipt['hash'][:16]}")
        return receipt

    async def lookup(self, ref: str) -> Optional[dict]:
        return self._by_hash.get(ref)


# ── Ethereum ledger ───────────────────────────────────────────────────────────
class EthereumChain:
    """
    Sends one zero-value transaction per event, signed with
    DEPLOYER_PRIVATE_KEY and addressed to CONTRACT_ADDRESS (or back to the
    deployer when no contract is configured). web3 calls are blocking, so
    they run in a worker thread.
    """

    name = "ethereum"

    def __init__(self):
        self.w3 = None

    async def connect(self):
        from web3 import Web3

        w3 = Web3(Web3.HTTPProvider(settings.WEB3_PROVIDER_URL))
        if not await asyncio.to_thread(w3.is_connected):
            raise ConnectionError(f"Ethereum node unreachable at {settings.WEB3_PROVIDER_URL}")
        self.w3 = w3
        logger.info(f"Ethereum ledger ready, chain {settings.CHAIN_ID}")

    async def disconnect(self):
        self.w3 = None
        logger.info("Ethereum ledger closed")

    async def ping(self) -> str:
        if self.w3 is None:
            return "disconnected"
        height = await asyncio.to_thread(lambda: self.w3.eth.block_number)
        return f"ok (ethereum, block {height})"

    def _send(self, event: str, digest: str) -> dict:
        eth = self.w3.eth
        sender = eth.account.from_key(settings.DEPLOYER_PRIVATE_KEY)
        target = self.w3.to_checksum_address(settings.CONTRACT_ADDRESS or sender.address)
        tx = {
            "from": sender.address,
            "to": target,
            "value": 0,
            "data": self.w3.to_hex(text=f"{event}:{digest}"),
            "nonce": eth.get_transaction_count(sender.address),
            "gasPrice": eth.gas_price,
            "chainId": settings.CHAIN_ID,
        }
        tx["gas"] = eth.estimate_gas(tx)
        signed = sender.sign_transaction(tx)
        receipt = eth.wait_for_transaction_receipt(eth.send_raw_transaction(signed.raw_transaction))
        return {
            "number": receipt.blockNumber,
            "event": event,
            "digest": digest,
            "hash": receipt.transactionHash.hex(),
            "recorded_at": datetime.utcnow().isoformat(),
        }

    async def record(self, event: str, payload: dict) -> dict:
        if self.w3 is None:
            raise RuntimeError("Ethereum ledger is not connected")
        receipt = await asyncio.to_thread(self._send, event, event_digest(event, payload))
        logger.info(f"Ledger tx {receipt['hash']} {event} in block {receipt['number']}")
        return receipt

    async def lookup(self, ref: str) -> Optional[dict]:
        if self.w3 is None:
            return None
        from web3.exceptions import TransactionNotFound

        try:
            tx = await asyncio.to_thread(self.w3.eth.get_transaction, ref)
        except TransactionNotFound:
            return None
        return dict(tx)


def _create_blockchain():
    backends = {"simulation": SimulatedChain, "ethereum": EthereumChain}
    backend = backends.get(settings.BLOCKCHAIN_BACKEND.lower())
    if backend is None:
        logger.warning(f"Unknown BLOCKCHAIN_BACKEND '{settings.BLOCKCHAIN_BACKEND}', using simulation")
        backend = SimulatedChain
    logger.info(f"Ledger backend: {backend.name}")
    return backend()


blockchain = _create_blockchain()

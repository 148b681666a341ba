from config import settings
from core.blockchain import EthereumChain, GENESIS_PREV, SimulatedChain, _create_blockchain, event_digest


async def connected_chain():
    chain = SimulatedChain()
    await chain.connect()
    return chain


async def test_connect_adds_genesis_once():
    chain = await connected_chain()
    await chain.connect()
    assert len(chain.chain) == 1
    assert chain.chain[0]["event"] == "GENESIS"
    assert chain.chain[0]["prev_hash"] == GENESIS_PREV


async def test_receipts_are_hash_linked():
    chain = await connected_chain()
    first = await chain.record("LAND_REGISTER", {"land_id": 1})
    second = await chain.record("LAND_APPROVE", {"land_id": 1})
    assert first["prev_hash"] == chain.chain[0]["hash"]
    assert second["prev_hash"] == first["hash"]
    assert second["number"] == 2


async def test_lookup_by_hash():
    chain = await connected_chain()
    receipt = await chain.record("LAND_REQUEST", {"land_id": 7})
    assert (await chain.lookup(receipt["hash"]))["payload"] == {"land_id": 7}
    assert await chain.lookup("f" * 64) is None


async def test_ping_reports_height():
    chain = await connected_chain()
    assert (await chain.ping()).startswith("ok")


def test_digest_is_canonical():
    assert event_digest("E", {"a": 1, "b": 2}) == event_digest("E", {"b": 2, "a": 1})
    assert event_digest("E", {"a": 1}) != event_digest("F", {"a": 1})


def test_backend_selection(monkeypatch):
    monkeypatch.setattr(settings, "BLOCKCHAIN_BACKEND", "Ethereum")
    assert isinstance(_create_blockchain(), EthereumChain)
    monkeypatch.setattr(settings, "BLOCKCHAIN_BACKEND", "fabric")
    assert isinstance(_create_blockchain(), SimulatedChain)


async def test_disconnected_ethereum_chain():
    chain = EthereumChain()
    assert await chain.ping() == "disconnected"
    assert await chain.lookup("0x" + "0" * 64) is None


async def test_ethereum_lookup_of_unknown_transaction():
    from types import SimpleNamespace
    from web3.exceptions import TransactionNotFound

    def get_transaction(ref):
        raise TransactionNotFound(f"Transaction with hash {ref} not found")

    chain = EthereumChain()
    chain.w3 = SimpleNamespace(eth=SimpleNamespace(get_transaction=get_transaction))
    assert await chain.lookup("0x" + "ab" * 32) is None

"""
密钥生成与读取测试。
"""

import asyncio
import base64
import hashlib
import json

import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from nacl.public import PrivateKey

from src.wizard.network.errors import MissingKeyMaterial
from src.wizard.network.services import keygen


def test_generate_keys_writes_every_node(tmp_path, make_spec):
    spec = make_spec(count=3, transaction_manager="tessera-1.6")
    bundles = asyncio.run(keygen.generate_keys(spec, tmp_path))

    assert [b.node_number for b in bundles] == [1, 2, 3]
    for n in (1, 2, 3):
        key_dir = tmp_path / f"key{n}"
        for name in keygen.REQUIRED_KEY_FILES + keygen.TM_KEY_FILES:
            assert (key_dir / name).is_file()
    assert len({b.enode_id for b in bundles}) == 3


def test_enode_matches_node_key(tmp_path, make_spec):
    spec = make_spec(count=1)
    (bundle,) = asyncio.run(keygen.generate_keys(spec, tmp_path))

    assert len(bundle.enode_id) == 128
    assert keygen.enode_id_from_node_key(bundle.node_key) == bundle.enode_id
    assert bundle.node_address == keygen.address_from_public_hex(bundle.enode_id)


def test_keystore_decrypts_to_account_address(tmp_path, make_spec):
    spec = make_spec(count=1)
    (bundle,) = asyncio.run(keygen.generate_keys(spec, tmp_path))
    keystore = json.loads(bundle.path("key").read_text())
    crypto = keystore["crypto"]
    params = crypto["kdfparams"]

    derived = hashlib.scrypt(
        bundle.password.encode(),
        salt=bytes.fromhex(params["salt"]),
        n=params["n"],
        r=params["r"],
        p=params["p"],
        dklen=params["dklen"],
    )
    ciphertext = bytes.fromhex(crypto["ciphertext"])
    assert keygen.keccak256(derived[16:32] + ciphertext).hex() == crypto["mac"]

    iv = bytes.fromhex(crypto["cipherparams"]["iv"])
    decryptor = Cipher(algorithms.AES(derived[:16]), modes.CTR(iv)).decryptor()
    priv = decryptor.update(ciphertext) + decryptor.finalize()
    account = ec.derive_private_key(int.from_bytes(priv, "big"), ec.SECP256K1())
    pub = account.public_key().public_numbers()
    public_hex = format(pub.x, "064x") + format(pub.y, "064x")

    assert keygen.address_from_public_hex(public_hex) == bundle.account_address
    assert keystore["address"] == bundle.account_address[2:]


def test_tessera_keypair_format():
    tm_key, tm_pub = keygen.generate_tessera_keypair()
    data = json.loads(tm_key)
    assert data["type"] == "unlocked"
    private = PrivateKey(base64.b64decode(data["data"]["bytes"]))
    assert base64.b64encode(bytes(private.public_key)).decode() == tm_pub


def test_no_tm_keys_without_transaction_manager(tmp_path, make_spec):
    spec = make_spec(count=2)
    bundles = asyncio.run(keygen.generate_keys(spec, tmp_path))
    assert all(b.tm_key is None and b.tm_pub is None for b in bundles)
    assert not (tmp_path / "key1" / "tm.key").exists()


def test_missing_key_file_is_fatal(tmp_path, make_spec):
    spec = make_spec(count=3)
    asyncio.run(keygen.generate_keys(spec, tmp_path))
    (tmp_path / "key2" / "nodekey").unlink()

    with pytest.raises(MissingKeyMaterial) as ei:
        keygen.load_key_bundles(spec, tmp_path)
    assert ei.value.node_number == 2


def test_missing_key_dir_for_extra_node(tmp_path, make_spec):
    asyncio.run(keygen.generate_keys(make_spec(count=2), tmp_path))
    with pytest.raises(MissingKeyMaterial) as ei:
        keygen.load_key_bundles(make_spec(count=3), tmp_path)
    assert ei.value.node_number == 3


def test_missing_tm_key_is_fatal(tmp_path, make_spec):
    asyncio.run(keygen.generate_keys(make_spec(count=1), tmp_path))
    with pytest.raises(MissingKeyMaterial):
        keygen.load_key_bundles(make_spec(count=1, transaction_manager="tessera-1.6"), tmp_path)


def test_copy_fixture_keys_requires_fixture(tmp_path, runtime_paths, monkeypatch):
    from src.wizard.config import config

    monkeypatch.setattr(config, "fixture_keys_dir", str(tmp_path / "missing"))
    with pytest.raises(MissingKeyMaterial):
        keygen.copy_fixture_keys(tmp_path / "dest", runtime_paths)


def test_copy_fixture_keys(tmp_path, runtime_paths, fixture_keys, make_spec):
    dest = tmp_path / "dest"
    keygen.copy_fixture_keys(dest, runtime_paths)
    bundles = keygen.load_key_bundles(make_spec(count=3, transaction_manager="tessera-1.6"), dest)
    assert (dest / "key3" / "enode").read_text() == (fixture_keys / "key3" / "enode").read_text()
    assert bundles[2].tm_pub

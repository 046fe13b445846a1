"""
节点密钥生成与读取服务。

每个节点的密钥目录 key{N} 包含：
    - nodekey: secp256k1 节点私钥（hex）
    - enode: 由节点公钥推导的 enode id（未压缩公钥去掉 0x04 前缀，128 位 hex）
    - key: geth V3 keystore（账户私钥，scrypt + aes-128-ctr）
    - password.txt: keystore 密码
    - tm.key / tm.pub: 仅在配置了交易管理器时生成（NaCl box 密钥对）
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import secrets
import shutil
import uuid
from pathlib import Path

from Crypto.Hash import keccak
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from loguru import logger
from nacl.public import PrivateKey

from ...config import config
from ..errors import MissingKeyMaterial
from ..schemas import KeyBundle, NetworkSpec, RuntimePaths

REQUIRED_KEY_FILES = ("enode", "key", "nodekey", "password.txt")
TM_KEY_FILES = ("tm.key", "tm.pub")

# geth --lightkdf 参数
_SCRYPT_N = 4096
_SCRYPT_R = 8
_SCRYPT_P = 6
_SCRYPT_DKLEN = 32


def keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


def _public_key_hex(private_key: ec.EllipticCurvePrivateKey) -> str:
    pub = private_key.public_key().public_numbers()
    return f"{format(pub.x, '064x')}{format(pub.y, '064x')}"


def address_from_public_hex(public_hex: str) -> str:
    """以太坊地址：公钥 keccak256 的后 20 字节。"""
    return "0x" + keccak256(bytes.fromhex(public_hex))[-20:].hex()


def load_node_key(node_key_hex: str) -> ec.EllipticCurvePrivateKey:
    return ec.derive_private_key(int(node_key_hex, 16), ec.SECP256K1())


def enode_id_from_node_key(node_key_hex: str) -> str:
    return _public_key_hex(load_node_key(node_key_hex))


def encrypt_keystore(private_key: ec.EllipticCurvePrivateKey, password: str) -> dict:
    """生成 geth 兼容的 V3 keystore。"""
    priv = private_key.private_numbers().private_value.to_bytes(32, "big")
    salt = secrets.token_bytes(32)
    iv = secrets.token_bytes(16)
    derived = hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt,
        n=_SCRYPT_N,
        r=_SCRYPT_R,
        p=_SCRYPT_P,
        dklen=_SCRYPT_DKLEN,
    )
    encryptor = Cipher(algorithms.AES(derived[:16]), modes.CTR(iv)).encryptor()
    ciphertext = encryptor.update(priv) + encryptor.finalize()
    mac = keccak256(derived[16:32] + ciphertext).hex()
    address = address_from_public_hex(_public_key_hex(private_key))
    return {
        "address": address[2:],
        "crypto": {
            "cipher": "aes-128-ctr",
            "cipherparams": {"iv": iv.hex()},
            "ciphertext": ciphertext.hex(),
            "kdf": "scrypt",
            "kdfparams": {
                "dklen": _SCRYPT_DKLEN,
                "n": _SCRYPT_N,
                "p": _SCRYPT_P,
                "r": _SCRYPT_R,
                "salt": salt.hex(),
            },
            "mac": mac,
        },
        "id": str(uuid.uuid4()),
        "version": 3,
    }


def generate_tessera_keypair() -> tuple[str, str]:
    """返回 (tm.key 内容, tm.pub 内容)，tm.key 使用 tessera 的未加密格式。"""
    private_key = PrivateKey.generate()
    private_b64 = base64.b64encode(bytes(private_key)).decode("utf-8")
    public_b64 = base64.b64encode(bytes(private_key.public_key)).decode("utf-8")
    tm_key = json.dumps({"type": "unlocked", "data": {"bytes": private_b64}}, indent=2)
    return tm_key, public_b64


def _generate_node_keys(key_dir: Path, with_tm: bool, password: str) -> None:
    key_dir.mkdir(parents=True, exist_ok=True)

    node_key = ec.generate_private_key(ec.SECP256K1())
    node_key_hex = format(node_key.private_numbers().private_value, "064x")
    (key_dir / "nodekey").write_text(node_key_hex, encoding="utf-8")
    (key_dir / "enode").write_text(_public_key_hex(node_key), encoding="utf-8")

    account_key = ec.generate_private_key(ec.SECP256K1())
    keystore = encrypt_keystore(account_key, password)
    (key_dir / "key").write_text(json.dumps(keystore), encoding="utf-8")
    (key_dir / "password.txt").write_text(password, encoding="utf-8")

    if with_tm:
        tm_key, tm_pub = generate_tessera_keypair()
        (key_dir / "tm.key").write_text(tm_key, encoding="utf-8")
        (key_dir / "tm.pub").write_text(tm_pub, encoding="utf-8")


async def generate_keys(spec: NetworkSpec, config_dir: Path) -> list[KeyBundle]:
    """为每个节点并发生成密钥目录，全部完成后按节点顺序读取为 KeyBundle。"""
    logger.info(f"正在为 {len(spec.nodes)} 个节点生成密钥...")
    tasks = [
        asyncio.to_thread(
            _generate_node_keys,
            config_dir / f"key{node_number}",
            spec.is_tessera,
            config.key_password,
        )
        for node_number in range(1, len(spec.nodes) + 1)
    ]
    results = await asyncio.gather(*tasks, return_exceptions=True)
    failures = [(i, r) for i, r in enumerate(results, start=1) if isinstance(r, BaseException)]
    for node_number, err in failures:
        logger.error(f"节点 {node_number} 密钥生成失败: {err}")
    if failures:
        raise failures[0][1]
    return load_key_bundles(spec, config_dir)


def resolve_fixture_dir(paths: RuntimePaths) -> Path:
    fixture = Path(config.fixture_keys_dir)
    return fixture if fixture.is_absolute() else paths.working_dir / fixture


def copy_fixture_keys(destination: Path, paths: RuntimePaths) -> None:
    """不生成密钥时，将预置的密钥集拷贝到目标目录。"""
    fixture = resolve_fixture_dir(paths)
    if not fixture.is_dir():
        raise MissingKeyMaterial(None, fixture)
    logger.info(f"使用预置密钥集：{fixture} -> {destination}")
    shutil.copytree(fixture, destination, dirs_exist_ok=True)


def _read_required(key_dir: Path, file_name: str, node_number: int) -> str:
    path = key_dir / file_name
    if not path.is_file():
        raise MissingKeyMaterial(node_number, path)
    return path.read_text(encoding="utf-8")


def load_key_bundles(spec: NetworkSpec, config_dir: Path) -> list[KeyBundle]:
    """按节点顺序读取 key1..keyN；任何节点缺少文件均视为致命错误。"""
    bundles: list[KeyBundle] = []
    for node_number in range(1, len(spec.nodes) + 1):
        key_dir = config_dir / f"key{node_number}"
        enode_id = _read_required(key_dir, "enode", node_number).strip()
        node_key = _read_required(key_dir, "nodekey", node_number).strip()
        password = _read_required(key_dir, "password.txt", node_number)
        try:
            keystore = json.loads(_read_required(key_dir, "key", node_number))
            derived_enode = enode_id_from_node_key(node_key)
        except ValueError as e:
            raise MissingKeyMaterial(node_number, f"{key_dir}: {e}") from e
        node_address = address_from_public_hex(derived_enode)

        if derived_enode != enode_id.lower():
            logger.warning(f"节点 {node_number} 的 enode 与 nodekey 不一致，以 enode 文件为准")

        tm_key = tm_pub = None
        if spec.is_tessera:
            tm_key = _read_required(key_dir, "tm.key", node_number)
            tm_pub = _read_required(key_dir, "tm.pub", node_number).strip()

        bundles.append(
            KeyBundle(
                node_number=node_number,
                key_dir=key_dir,
                enode_id=enode_id,
                node_key=node_key,
                account_address="0x" + str(keystore.get("address", "")).lower().removeprefix("0x"),
                node_address=node_address,
                password=password,
                tm_key=tm_key,
                tm_pub=tm_pub,
            )
        )
    return bundles

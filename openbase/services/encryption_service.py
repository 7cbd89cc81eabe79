"""
加密服务
用于加密和解密数据源连接描述中的敏感信息
"""
import base64
import hashlib
import json
import os
from cryptography.fernet import Fernet, InvalidToken
from typing import Any, Dict, Optional, Tuple

from .errors import BadRequestError, EngineError
from ..utils.logger import get_logger

logger = get_logger(__name__)


def derive_fernet_key(key_str: str) -> bytes:
    """
    把 ENCRYPTION_KEY 转换为 Fernet 密钥

    合法的 Fernet 密钥原样使用；其他字符串（口令）经 SHA-256 派生。
    """
    raw = key_str.strip().encode()
    try:
        Fernet(raw)
        return raw
    except ValueError:
        return base64.urlsafe_b64encode(hashlib.sha256(raw).digest())


class EncryptionService:
    """加密服务类"""

    def __init__(self, key: Optional[bytes] = None):
        """
        初始化加密服务

        Args:
            key: 加密密钥（32字节URL安全的base64编码字符串）
                 如果为None，则从环境变量ENCRYPTION_KEY读取
                 如果环境变量也不存在，则不加密（明文存储连接描述）
        """
        if key is None:
            key_str = os.getenv("ENCRYPTION_KEY")
            if key_str and key_str.strip():
                key = derive_fernet_key(key_str)

        self.cipher = Fernet(key) if key else None

    @property
    def enabled(self) -> bool:
        return self.cipher is not None

    def encrypt(self, plaintext: str) -> str:
        """
        加密字符串

        Args:
            plaintext: 明文字符串

        Returns:
            加密后的字符串（base64编码）
        """
        if not self.enabled:
            raise EngineError("未配置 ENCRYPTION_KEY，无法加密")
        if not plaintext:
            return ""

        encrypted_bytes = self.cipher.encrypt(plaintext.encode())
        return encrypted_bytes.decode()

    def decrypt(self, ciphertext: str) -> str:
        """
        解密字符串

        Raises:
            cryptography.fernet.InvalidToken: 如果密文无效或密钥错误
        """
        if not self.enabled:
            raise EngineError("未配置 ENCRYPTION_KEY，无法解密")
        if not ciphertext:
            return ""

        decrypted_bytes = self.cipher.decrypt(ciphertext.encode())
        return decrypted_bytes.decode()

    def encrypt_connection(self, connection: Dict[str, Any]) -> Tuple[str, bool]:
        """
        序列化并（在配置了密钥时）加密连接描述

        Returns:
            (存储文本, 是否已加密)
        """
        payload = json.dumps(connection, ensure_ascii=False)
        if not self.enabled:
            return payload, False
        return self.encrypt(payload), True

    def decrypt_connection(self, stored: str, encrypted: bool) -> Dict[str, Any]:
        """
        还原明文连接描述

        Raises:
            EngineError: 密文无法用当前密钥解密
            BadRequestError: 存储的连接描述不是JSON对象
        """
        payload = stored or "{}"
        if encrypted:
            try:
                payload = self.decrypt(payload)
            except InvalidToken:
                logger.error("连接描述解密失败，请检查 ENCRYPTION_KEY")
                raise EngineError("连接描述解密失败")

        connection = json.loads(payload)
        if not isinstance(connection, dict):
            raise BadRequestError("连接描述必须是JSON对象")
        return connection

    @staticmethod
    def generate_key() -> str:
        """
        生成新的加密密钥

        Returns:
            新生成的密钥（base64编码字符串）
        """
        key = Fernet.generate_key()
        return key.decode()


# 全局加密服务实例
_encryption_service = None


def get_encryption_service() -> EncryptionService:
    """获取全局加密服务实例"""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service


def reset_encryption_service():
    """丢弃全局实例，下次访问时重新读取 ENCRYPTION_KEY"""
    global _encryption_service
    _encryption_service = None

# trans_relay/db/__init__.py
"""数据库模式定义。"""

from .schema import Base, TranslationJobRecord

__all__ = ["Base", "TranslationJobRecord"]

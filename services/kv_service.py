"""
Key-Value 服務：本機持久化的字串儲存

只有三個操作：get / set / delete，值一律是字串，
解析（例如 JSON）由呼叫者負責
"""
from typing import Optional

from sqlalchemy.orm import Session

from database import transactional
from models import KeyValueEntry


def kv_get(db: Session, key: str) -> Optional[str]:
    """
    讀取一個 key

    返回：
        字串，key 不存在時返回 None
    """
    entry = db.query(KeyValueEntry).filter(KeyValueEntry.key == key).first()
    if not entry:
        return None
    return entry.value


@transactional
def kv_set(db: Session, key: str, value: str) -> None:
    """寫入（覆蓋）一個 key；key 是 primary key，merge 會自動決定 INSERT 或 UPDATE"""
    db.merge(KeyValueEntry(key=key, value=value))


@transactional
def kv_delete(db: Session, key: str) -> bool:
    """
    刪除一個 key

    返回：
        True 如果原本有資料，False 否則（不存在也不是錯誤）
    """
    deleted = db.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete()
    return deleted > 0

"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

注意：地理編碼失敗、過期的猜測都不是異常，而是狀態（見 RoundController）
"""


class MapQuizException(Exception):
    """所有測驗異常的基類"""
    pass


# ============ Session 相關異常 ============

class SessionNotFound(MapQuizException):
    """遊戲 session 不存在"""
    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


# ============ 狀態轉換異常 ============

class InvalidStateTransition(MapQuizException):
    """非法的狀態轉換"""
    pass


# ============ 設定相關異常 ============

class UnknownGeocoder(MapQuizException):
    """設定檔指定了不存在的地理編碼器"""
    def __init__(self, name):
        self.name = name
        super().__init__(f"Unknown geocoder '{name}'")

"""
地點服務：測驗使用的固定校園地點與地圖設定

純資料，不涉及狀態轉換
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Location:
    name: str
    address: str


# 出題順序固定，不洗牌
LOCATIONS: Tuple[Location, ...] = (
    Location("Oasis Wellness Center — F4", "Oasis Wellness Center, CSUN, Northridge, CA"),
    Location("Chaparral Hall — F3", "Chaparral Hall, CSUN, Northridge, CA"),
    Location("Sierra Tower — C3", "Sierra Tower, CSUN, Northridge, CA"),
    Location("Black House — B6", "Black House, CSUN, Northridge, CA"),
    Location("The Soraya — E1", "The Soraya, CSUN, Northridge, CA"),
)

CAMPUS_CENTER = {"lat": 34.2400, "lng": -118.5290}

CAMPUS_BOUNDS = {
    "north": 34.2910,
    "south": 34.2315,
    "east": -118.5135,
    "west": -118.5425,
}


def get_map_config(timer_interval_ms: int, advance_delay_ms: int) -> dict:
    """
    前端地圖元件需要的設定

    所有平移、縮放、鍵盤操作都關閉，視野限制在校園範圍內；
    雙擊只用來猜位置，不能觸發縮放。

    參數：
        timer_interval_ms: 前端刷新計時器的間隔
        advance_delay_ms: 猜完之後停留多久才進入下一回合

    返回：
        可直接序列化成 JSON 的 dict
    """
    return {
        "center": CAMPUS_CENTER,
        "zoom": 5,
        "map_type_id": "roadmap",
        "disable_default_ui": True,
        "draggable": False,
        "scrollwheel": False,
        "disable_double_click_zoom": True,
        "gesture_handling": "none",
        "keyboard_shortcuts": False,
        "restriction": {
            "lat_lng_bounds": CAMPUS_BOUNDS,
            "strict_bounds": True,
        },
        "timer_interval_ms": timer_interval_ms,
        "advance_delay_ms": advance_delay_ms,
        "total_rounds": len(LOCATIONS),
    }

"""
區域服務：建立目標容許範圍，並判斷猜測是否落在範圍內

純計算邏輯，沒有副作用
"""
from dataclasses import dataclass
from typing import Dict

DEFAULT_HALF_EXTENT = 0.00028

CORRECT_COLOR = "#1b7f3a"
WRONG_COLOR = "#b32020"


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True)
class TargetRegion:
    """
    以目標座標為中心的軸對齊矩形

    half_extent 以「度」為單位，緯度與經度使用同一個值。
    每度代表的距離會隨緯度變化，但所有地點都在同一個校園裡，誤差可以接受。
    """
    name: str
    center: Coordinate
    half_extent: float

    @property
    def south(self) -> float:
        return self.center.lat - self.half_extent

    @property
    def north(self) -> float:
        return self.center.lat + self.half_extent

    @property
    def west(self) -> float:
        return self.center.lng - self.half_extent

    @property
    def east(self) -> float:
        return self.center.lng + self.half_extent

    def bounds(self) -> Dict[str, float]:
        return {
            "south": self.south,
            "west": self.west,
            "north": self.north,
            "east": self.east,
        }


def build_target_region(name: str, center: Coordinate,
                        half_extent: float = DEFAULT_HALF_EXTENT) -> TargetRegion:
    """
    在地理編碼結果周圍建立容許範圍

    範圍：[lat - d, lat + d] × [lng - d, lng + d]

    參數：
        name: 地點顯示名稱
        center: 地理編碼得到的座標
        half_extent: d（度），預設約 30 公尺

    返回：
        TargetRegion
    """
    return TargetRegion(name=name, center=center, half_extent=half_extent)


def evaluate_guess(guess: Coordinate, region: TargetRegion) -> bool:
    """
    判斷猜測座標是否在目標範圍內（邊界也算答對）

    範例（d = 0.00028）：
        中心點         -> True
        lat + d        -> True
        lat + 2d       -> False
    """
    return (
        region.south <= guess.lat <= region.north
        and region.west <= guess.lng <= region.east
    )


def feedback_color(correct: bool) -> str:
    """答對綠色、答錯紅色"""
    return CORRECT_COLOR if correct else WRONG_COLOR

"""
測試用的假地理編碼器與時鐘
"""
import asyncio

from services.geocoding_service import GeocodeResult, STATUS_ZERO_RESULTS
from services.region_service import Coordinate


class FakeGeocoder:
    """
    記錄每次請求的地理編碼器

    - failing 裡的地址回傳 ZERO_RESULTS
    - hold(address) 之後，該地址的請求會停住，直到 release(address)
    """

    def __init__(self, table):
        self.table = dict(table)
        self.failing = set()
        self.calls = []
        self.completed = []
        self._holds = {}

    def hold(self, address):
        self._holds[address] = asyncio.Event()

    def release(self, address):
        self._holds.pop(address).set()

    async def geocode(self, address):
        self.calls.append(address)
        gate = self._holds.get(address)
        if gate is not None:
            await gate.wait()
        self.completed.append(address)

        if address in self.failing or address not in self.table:
            return GeocodeResult.failure(STATUS_ZERO_RESULTS)
        return GeocodeResult.success(self.table[address])


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def miss(coordinate: Coordinate) -> Coordinate:
    """離目標約 1 公里的座標"""
    return Coordinate(lat=coordinate.lat + 0.01, lng=coordinate.lng)


async def until(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was never reached")

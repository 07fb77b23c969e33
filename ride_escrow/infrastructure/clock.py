"""Wall-clock implementation of the ``Clock`` port."""

import time

from ride_escrow.domain.ports import Clock


class SystemClock(Clock):
    def now(self) -> int:
        return int(time.time())

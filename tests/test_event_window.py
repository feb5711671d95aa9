import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "scripts" / "py"))

from event_window import EventRing


class EventRingTests(unittest.TestCase):
    def test_keeps_most_recent_in_arrival_order(self) -> None:
        ring: EventRing[int] = EventRing(3)
        ring.extend(range(1, 6))
        self.assertEqual(ring.items(), [3, 4, 5])
        self.assertEqual(len(ring), 3)

    def test_partial_fill(self) -> None:
        ring: EventRing[str] = EventRing(4)
        ring.push("a")
        ring.push("b")
        self.assertEqual(ring.items(), ["a", "b"])

    def test_non_positive_capacity_retains_nothing(self) -> None:
        for capacity in (0, -2):
            ring: EventRing[int] = EventRing(capacity)
            ring.extend([1, 2, 3])
            self.assertEqual(ring.items(), [])
            self.assertEqual(ring.capacity, 0)

    def test_wraps_repeatedly(self) -> None:
        ring: EventRing[int] = EventRing(2)
        for value in range(101):
            ring.push(value)
        self.assertEqual(ring.items(), [99, 100])


if __name__ == "__main__":
    unittest.main()

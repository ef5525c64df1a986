# geometry.py

from collections import namedtuple


class Rect(namedtuple('Rect', ['min_x', 'min_y', 'max_x', 'max_y'])):
    """
    Immutable axis-aligned rectangle in model space (meters, y up).

    Data Contract:
    - Invariants: min_x <= max_x and min_y <= max_y for any rectangle built
      through from_size() or the transforming helpers below.
    """
    __slots__ = ()

    @classmethod
    def from_size(cls, x, y, width, height):
        return cls(x, y, x + width, y + height)

    @property
    def width(self):
        return self.max_x - self.min_x

    @property
    def height(self):
        return self.max_y - self.min_y

    @property
    def center_x(self):
        return (self.min_x + self.max_x) / 2

    @property
    def center_y(self):
        return (self.min_y + self.max_y) / 2

    @property
    def center(self):
        return self.center_x, self.center_y

    @property
    def area(self):
        return self.width * self.height

    def contains_point(self, x, y):
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def contains_rect(self, other):
        return (self.min_x <= other.min_x and other.max_x <= self.max_x and
                self.min_y <= other.min_y and other.max_y <= self.max_y)

    def intersects(self, other):
        """Inclusive test, touching edges count as intersecting."""
        return (self.min_x <= other.max_x and other.min_x <= self.max_x and
                self.min_y <= other.max_y and other.min_y <= self.max_y)

    def exclusive_intersects(self, other):
        """Overlap test that does not count shared edges as intersection."""
        min_x = max(self.min_x, other.min_x)
        min_y = max(self.min_y, other.min_y)
        max_x = min(self.max_x, other.max_x)
        max_y = min(self.max_y, other.max_y)
        return (max_x - min_x) > 0 and (max_y - min_y) > 0

    def intersection(self, other):
        return Rect(max(self.min_x, other.min_x), max(self.min_y, other.min_y),
                    min(self.max_x, other.max_x), min(self.max_y, other.max_y))

    def union(self, other):
        return Rect(min(self.min_x, other.min_x), min(self.min_y, other.min_y),
                    max(self.max_x, other.max_x), max(self.max_y, other.max_y))

    def translated(self, dx, dy):
        return Rect(self.min_x + dx, self.min_y + dy, self.max_x + dx, self.max_y + dy)

    def with_height(self, height):
        """Same bottom edge, new height."""
        return Rect(self.min_x, self.min_y, self.max_x, self.min_y + height)


def union_of(rects):
    """Bounding rectangle of a non-empty iterable of rectangles."""
    rects = iter(rects)
    result = next(rects)
    for rect in rects:
        result = result.union(rect)
    return result


def horizontal_overlap(rect_a, rect_b):
    return max(min(rect_a.max_x, rect_b.max_x) - max(rect_a.min_x, rect_b.min_x), 0.0)


def vertical_overlap(rect_a, rect_b):
    return max(min(rect_a.max_y, rect_b.max_y) - max(rect_a.min_y, rect_b.min_y), 0.0)

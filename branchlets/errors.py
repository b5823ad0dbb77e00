"""Exceptions raised while building branchlets."""


class BranchletError(Exception):
    """Base class for branchlet construction errors"""


class InvalidSidesCount(BranchletError, ValueError):
    """A branchlet needs at least 2 sides"""

    def __init__(self, sides):
        self.sides = sides
        super().__init__(f"Cannot create Branchlets with less than 2 sides (got {sides})")


class EmptySkeleton(BranchletError, ValueError):
    """A skeleton was given without any segments"""

    def __init__(self):
        super().__init__("Cannot create a branchlet from a skeleton with no segments")

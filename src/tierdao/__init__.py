"""tierdao — tiered governance engine.

Sessions of competing proposals, one chosen proposal open for voting at a
time, and votes weighted by the voter's holdings tier or share of supply.
"""

__version__ = "0.1.0"

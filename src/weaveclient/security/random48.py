"""48-bit linear congruential generator, bit-compatible with java.util.Random.

The signing-key derivation depends on this exact sequence, so the constants
and the bit slicing must not change.
"""

MULTIPLIER = 0x5DEECE66D
INCREMENT = 0xB
MASK = (1 << 48) - 1


class LegacyRandom:
    __slots__ = ("state",)

    def __init__(self, seed: int):
        self.state = (seed ^ MULTIPLIER) & MASK

    def next(self, bits: int) -> int:
        """Advance the state and return its top ``bits`` bits as an unsigned int."""
        if not 1 <= bits <= 32:
            raise ValueError("bits must be between 1 and 32")
        self.state = (self.state * MULTIPLIER + INCREMENT) & MASK
        return self.state >> (48 - bits)

    def next_int(self, n: int) -> int:
        """Return a uniform int in [0, n)."""
        if n <= 0:
            raise ValueError("n must be positive")

        if n & -n == n:
            # power of two: take the high bits directly
            return (n * self.next(31)) >> 31

        while True:
            bits = self.next(31)
            val = bits % n
            # reject the partial bucket at the top of the 31-bit range
            if bits - val + (n - 1) < (1 << 31):
                return val

"""
Random number generation utilities.

Generation code receives an explicit AleaPRNG instead of touching
Python's or NumPy's global random state, so a pass is a pure function
of its seed.
"""

import uuid
from typing import Optional, Union

from ..core.alea_prng import AleaPRNG


def create_prng(seed: Optional[Union[str, int]] = None) -> AleaPRNG:
    """
    Create a PRNG for one generation pass.

    Args:
        seed: Seed string or number; a random seed is drawn when omitted

    Returns:
        Fresh AleaPRNG instance
    """
    if seed is None:
        seed = new_seed()
    return AleaPRNG(str(seed))


def new_seed() -> str:
    """Short random seed string, as used for unseeded requests."""
    return str(uuid.uuid4())[:8]

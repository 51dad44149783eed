"""
Attestation - Prover.

The prover is a black box: prove(witness) -> (a, b, c).
Implementations are synchronous and may block; the generator
runs them in a worker thread.
"""

import hashlib
import logging
import random
import time
from abc import ABC, abstractmethod

from attestation.models import Witness, WitnessComponents
from core.constants import PROOF_MAX_LATENCY_SECONDS, PROOF_MIN_LATENCY_SECONDS
from core.hashing import canonical_json


logger = logging.getLogger(__name__)


class Prover(ABC):
    """Abstract prover."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def prove(self, witness: Witness) -> WitnessComponents:
        """
        Produce witness components.

        May block. Any exception is reported by the generator as
        an attestation failure.
        """
        pass

    def expected_latency_seconds(self) -> float:
        return 0.0


class SimulatedProver(Prover):
    """
    Stand-in prover.

    Components are SHA-256 digests of the canonical witness JSON
    under distinct domain tags, so they are deterministic for a
    given witness (nonce included). A configurable sleep models
    proving time.
    """

    _TAGS = ("a0", "a1", "b00", "b01", "b10", "b11", "c0", "c1")

    def __init__(
        self,
        min_latency: float = PROOF_MIN_LATENCY_SECONDS,
        max_latency: float = PROOF_MAX_LATENCY_SECONDS,
    ) -> None:
        if min_latency < 0 or max_latency < min_latency:
            raise ValueError("Require 0 <= min_latency <= max_latency")
        self._min_latency = min_latency
        self._max_latency = max_latency

    def prove(self, witness: Witness) -> WitnessComponents:
        latency = random.uniform(self._min_latency, self._max_latency)
        if latency > 0:
            time.sleep(latency)

        encoded = canonical_json(witness.to_dict())
        digests = {
            tag: hashlib.sha256(f"{tag}|{encoded}".encode("utf-8")).hexdigest()
            for tag in self._TAGS
        }
        return WitnessComponents(
            a=(digests["a0"], digests["a1"]),
            b=((digests["b00"], digests["b01"]), (digests["b10"], digests["b11"])),
            c=(digests["c0"], digests["c1"]),
        )

    def expected_latency_seconds(self) -> float:
        return (self._min_latency + self._max_latency) / 2

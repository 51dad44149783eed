"""
Attestation Package.

Turns an assessment into a privacy-preserving commitment.

Modules:
- models: Witness, WitnessComponents, Commitment
- prover: Prover interface and SimulatedProver
- generator: AttestationGenerator, verify_commitment
"""

from attestation.generator import AttestationGenerator, verify_commitment
from attestation.models import Commitment, Witness, WitnessComponents
from attestation.prover import Prover, SimulatedProver

__all__ = [
    "AttestationGenerator",
    "verify_commitment",
    "Commitment",
    "Witness",
    "WitnessComponents",
    "Prover",
    "SimulatedProver",
]

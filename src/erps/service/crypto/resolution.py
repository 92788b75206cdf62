"""
Homomorphic difference protocol.

Both moves are encrypted, the two ciphertexts are combined into an encryption of
(move_a - move_b), and only that difference is ever decrypted. Reduced mod 3 it
gives the outcome for player A: 0 draw, 1 win, 2 loss.
"""
import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional, Tuple

from erps.errors import MissingPrivateKeyError
from erps.model import GameResult, Move
from erps.service.crypto import elgamal, paillier
from erps.service.crypto.serialization import (
    decode_elgamal_ciphertext,
    decode_paillier_ciphertext,
    encode_elgamal_ciphertext,
    encode_paillier_ciphertext,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Plain move arithmetic
# ============================================================================

def result_from_difference(diff: int) -> GameResult:
    normalized = diff % 3
    if normalized == 0:
        return GameResult.DRAW
    if normalized == 1:
        return GameResult.WIN
    return GameResult.LOSE


def calculate_move_difference(move_a: Move, move_b: Move) -> int:
    return (move_a.number - move_b.number) % 3


def get_winner(move_a: Move, move_b: Move) -> GameResult:
    return result_from_difference(calculate_move_difference(move_a, move_b))


def get_winning_move(move: Move) -> Move:
    """The move that beats `move`"""
    return Move.from_number(move.number + 1)


def get_losing_move(move: Move) -> Move:
    """The move that `move` beats"""
    return Move.from_number(move.number - 1)


# ============================================================================
# Resolvers
# ============================================================================

class HomomorphicResolver(ABC):
    """Encrypts moves and resolves games for one cryptosystem.

    Ciphertexts cross this boundary as "0x" hex strings, the form the contract
    stores them in. A resolver built without a private key can encrypt and
    combine ciphertexts but refuses to decrypt.
    """

    name = "base"

    def __init__(self, move_offset: int = 0):
        self.move_offset = move_offset

    @property
    @abstractmethod
    def can_decrypt(self) -> bool:
        ...

    def encode_move(self, move: Move) -> int:
        return move.number + self.move_offset

    @abstractmethod
    def encrypt_move(self, move: Move) -> str:
        ...

    @abstractmethod
    def compute_difference(self, enc_a: str, enc_b: str) -> str:
        """Homomorphic encryption of a - b"""

    @abstractmethod
    def decrypt_signed_difference(self, difference_cipher: str) -> int:
        ...

    def decrypt_difference(self, difference_cipher: str) -> int:
        """Decrypted difference reduced into {0, 1, 2}"""
        diff = self.decrypt_signed_difference(difference_cipher)
        logger.debug(f"🔓 [{self.name}] decrypted difference {diff} -> {diff % 3}")
        return diff % 3

    def resolve(self, enc_a: str, enc_b: str) -> GameResult:
        return result_from_difference(self.decrypt_difference(self.compute_difference(enc_a, enc_b)))

    @abstractmethod
    def public_parameters(self) -> dict:
        ...

    def _require_private_key(self):
        if not self.can_decrypt:
            raise MissingPrivateKeyError(f"{self.name} resolver has no private key")


class PaillierResolver(HomomorphicResolver):
    name = "paillier"

    def __init__(
        self,
        public_key: paillier.PaillierPublicKey,
        private_key: Optional[paillier.PaillierPrivateKey] = None,
        move_offset: int = 0,
    ):
        super().__init__(move_offset)
        self.public_key = public_key
        self.private_key = private_key

    @property
    def can_decrypt(self) -> bool:
        return self.private_key is not None

    def encrypt_move(self, move: Move) -> str:
        c = paillier.encrypt(self.encode_move(move), self.public_key)
        return encode_paillier_ciphertext(c, self.public_key)

    def encrypt_move_with_proof(self, move: Move) -> Tuple[str, paillier.EncryptionProof]:
        m = self.encode_move(move)
        c, r = paillier.encrypt_with_randomness(m, self.public_key)
        proof = paillier.generate_proof(m, r, c, self.public_key)
        return encode_paillier_ciphertext(c, self.public_key), proof

    def verify_move(self, encrypted_move: str, move: Move, proof: paillier.EncryptionProof) -> bool:
        c = decode_paillier_ciphertext(encrypted_move, self.public_key)
        return paillier.verify_proof(c, self.encode_move(move), proof, self.public_key)

    def compute_difference(self, enc_a: str, enc_b: str) -> str:
        c_a = decode_paillier_ciphertext(enc_a, self.public_key)
        c_b = decode_paillier_ciphertext(enc_b, self.public_key)
        return encode_paillier_ciphertext(paillier.subtract_encrypted(c_a, c_b, self.public_key), self.public_key)

    def decrypt_signed_difference(self, difference_cipher: str) -> int:
        self._require_private_key()
        c = decode_paillier_ciphertext(difference_cipher, self.public_key)
        return paillier.to_signed(paillier.decrypt(c, self.private_key), self.public_key)

    def public_parameters(self) -> dict:
        return {
            "cryptosystem": self.name,
            "n": hex(self.public_key.n),
            "g": hex(self.public_key.g),
            "move_offset": self.move_offset,
        }


class ElGamalResolver(HomomorphicResolver):
    name = "elgamal"

    def __init__(
        self,
        public_key: elgamal.ElGamalPublicKey,
        private_key: Optional[elgamal.ElGamalPrivateKey] = None,
        move_offset: int = 0,
        candidates: Iterable[int] = elgamal.DIFFERENCE_DOMAIN,
    ):
        super().__init__(move_offset)
        self.public_key = public_key
        self.private_key = private_key
        self.candidates = tuple(candidates)

    @property
    def can_decrypt(self) -> bool:
        return self.private_key is not None

    def encrypt_move(self, move: Move) -> str:
        return encode_elgamal_ciphertext(elgamal.encrypt(self.encode_move(move), self.public_key))

    def compute_difference(self, enc_a: str, enc_b: str) -> str:
        ct_a = decode_elgamal_ciphertext(enc_a, self.public_key)
        ct_b = decode_elgamal_ciphertext(enc_b, self.public_key)
        return encode_elgamal_ciphertext(elgamal.homomorphic_difference(ct_a, ct_b, self.public_key))

    def decrypt_signed_difference(self, difference_cipher: str) -> int:
        self._require_private_key()
        ct = decode_elgamal_ciphertext(difference_cipher, self.public_key)
        return elgamal.decrypt(ct, self.private_key, self.public_key, self.candidates)

    def public_parameters(self) -> dict:
        return {
            "cryptosystem": self.name,
            "curve": self.public_key.curve.name,
            "Q": {"x": hex(self.public_key.Q.x), "y": hex(self.public_key.Q.y)},
            "move_offset": self.move_offset,
        }

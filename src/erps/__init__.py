"""
Encrypted rock-paper-scissors house engine.

Moves are encrypted under Paillier or EC-ElGamal; only the homomorphic
difference of the two moves is ever decrypted to settle a game.
"""
__version__ = "0.1.0"

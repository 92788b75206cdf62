"""
House configuration loaded from environment variables.

Public cryptosystem parameters are world-readable; the Paillier lambda/mu and the
ElGamal private scalar are server-only and never leave this process.
"""
import os
from typing import List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from erps.service.crypto.curve import BN254, ECPoint, is_on_curve
from erps.service.crypto.elgamal import ElGamalPrivateKey, ElGamalPublicKey
from erps.service.crypto.paillier import PaillierPrivateKey, PaillierPublicKey
from erps.service.crypto.resolution import ElGamalResolver, HomomorphicResolver, PaillierResolver

DEFAULT_BET_AMOUNT_WEI = 10 ** 16


class Settings(BaseModel):
    chain_gateway_url: str = "http://localhost:8545"
    contract_address: str = ""
    house_signers: List[str] = Field(default_factory=list)

    cryptosystem: Literal["paillier", "elgamal"] = "paillier"
    paillier_n: Optional[str] = None
    paillier_g: Optional[str] = None
    paillier_lambda: Optional[str] = None
    paillier_mu: Optional[str] = None
    elgamal_public_x: Optional[str] = None
    elgamal_public_y: Optional[str] = None
    elgamal_private_key: Optional[str] = None
    move_offset: int = 0

    cache_path: Optional[str] = None  # sqlite file; in-memory cache when unset
    stale_after_seconds: float = 60.0
    cache_ttl_seconds: float = 300.0
    confirmation_timeout_seconds: float = 60.0
    read_retries: int = 3
    write_retries: int = 5
    backoff_seconds: float = 1.0
    nonce_refresh_seconds: float = 10.0
    default_bet_wei: int = DEFAULT_BET_AMOUNT_WEI

    rate_limit: int = 10
    rate_window_seconds: float = 30.0


def _hex_int(value: str) -> int:
    return int(value[2:] if value.lower().startswith("0x") else value, 16)


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Reads settings from the environment (or an explicit mapping)"""
    env = os.environ if env is None else env
    values = {
        "chain_gateway_url": env.get("CHAIN_GATEWAY_URL"),
        "contract_address": env.get("GAME_CONTRACT_ADDRESS"),
        "cryptosystem": env.get("ERPS_CRYPTOSYSTEM"),
        "paillier_n": env.get("PAILLIER_N"),
        "paillier_g": env.get("PAILLIER_G"),
        "paillier_lambda": env.get("PAILLIER_LAMBDA"),
        "paillier_mu": env.get("PAILLIER_MU"),
        "elgamal_public_x": env.get("ELGAMAL_PUBLIC_X"),
        "elgamal_public_y": env.get("ELGAMAL_PUBLIC_Y"),
        "elgamal_private_key": env.get("ELGAMAL_PRIVATE_KEY"),
        "move_offset": env.get("ERPS_MOVE_OFFSET"),
        "cache_path": env.get("ERPS_CACHE_PATH"),
        "stale_after_seconds": env.get("ERPS_STALE_AFTER_SECONDS"),
        "cache_ttl_seconds": env.get("ERPS_CACHE_TTL_SECONDS"),
        "confirmation_timeout_seconds": env.get("ERPS_CONFIRMATION_TIMEOUT_SECONDS"),
        "read_retries": env.get("ERPS_READ_RETRIES"),
        "write_retries": env.get("ERPS_WRITE_RETRIES"),
        "backoff_seconds": env.get("ERPS_BACKOFF_SECONDS"),
        "nonce_refresh_seconds": env.get("ERPS_NONCE_REFRESH_SECONDS"),
        "default_bet_wei": env.get("ERPS_DEFAULT_BET_WEI"),
        "rate_limit": env.get("ERPS_RATE_LIMIT"),
        "rate_window_seconds": env.get("ERPS_RATE_WINDOW_SECONDS"),
    }
    signers = env.get("HOUSE_SIGNERS")
    if signers:
        values["house_signers"] = [s.strip() for s in signers.split(",") if s.strip()]
    return Settings(**{key: value for key, value in values.items() if value is not None})


def build_resolver(settings: Settings) -> HomomorphicResolver:
    """Builds the configured cryptosystem; private parts are optional"""
    if settings.cryptosystem == "paillier":
        if not settings.paillier_n:
            raise ValueError("PAILLIER_N is not set")
        public_key = PaillierPublicKey(
            _hex_int(settings.paillier_n),
            _hex_int(settings.paillier_g) if settings.paillier_g else None,
        )
        private_key = None
        if settings.paillier_lambda and settings.paillier_mu:
            private_key = PaillierPrivateKey(
                public_key, _hex_int(settings.paillier_lambda), _hex_int(settings.paillier_mu)
            )
        return PaillierResolver(public_key, private_key, settings.move_offset)

    if not (settings.elgamal_public_x and settings.elgamal_public_y):
        raise ValueError("ELGAMAL_PUBLIC_X / ELGAMAL_PUBLIC_Y are not set")
    Q = ECPoint(_hex_int(settings.elgamal_public_x), _hex_int(settings.elgamal_public_y))
    if not is_on_curve(Q, BN254):
        raise ValueError("ElGamal public point is not on bn254")
    private_key = None
    if settings.elgamal_private_key:
        private_key = ElGamalPrivateKey(_hex_int(settings.elgamal_private_key))
    return ElGamalResolver(ElGamalPublicKey(Q=Q), private_key, settings.move_offset)
